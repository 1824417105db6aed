from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_ledger
from app.schemas.attendance_schema import AttendanceCreate, AttendanceRead, AttendanceSummaryRead
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


@router.post(
    "/",
    response_model=AttendanceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Ghi nhận điểm danh (có mặt hoặc vắng) cho một buổi học",
)
def record_attendance(attendance_in: AttendanceCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.record_attendance(attendance_in)


@router.get("/subscription/{subscription_id}", response_model=List[AttendanceRead])
def get_attendance_for_subscription(subscription_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.attendance_for_subscription(subscription_id)


@router.get("/student/{student_id}", response_model=List[AttendanceRead])
def get_attendance_for_student(
    student_id: int,
    skip: int = 0,
    limit: int = 100,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.attendance_for_student(student_id, skip, limit)


@router.get(
    "/subscription/{subscription_id}/summary",
    response_model=AttendanceSummaryRead,
    summary="Tỷ lệ chuyên cần của một subscription",
)
def get_attendance_summary_for_subscription(subscription_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.attendance_summary_for_subscription(subscription_id)


@router.get(
    "/student/{student_id}/summary",
    response_model=AttendanceSummaryRead,
    summary="Tỷ lệ chuyên cần của học sinh trên mọi subscription",
)
def get_attendance_summary_for_student(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.attendance_summary_for_student(student_id)
