from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_ledger
from app.models.compensation_model import CompensationStatus
from app.schemas.attendance_schema import AttendanceRead
from app.schemas.compensation_schema import (
    CompensationCancel,
    CompensationComplete,
    CompensationCreate,
    CompensationRead,
)
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


@router.post(
    "/",
    response_model=CompensationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Admin xếp lớp học bù cho một buổi vắng",
)
def assign_compensation(assignment_in: CompensationCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.assign_compensation(assignment_in)


@router.get("/", response_model=List[CompensationRead], summary="Lọc các lớp học bù")
def list_compensations(
    student_id: Optional[int] = None,
    status: Optional[CompensationStatus] = Query(None, description="ASSIGNED, COMPLETED, CANCELLED"),
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.list_compensations(student_id, status)


@router.get(
    "/eligible/{student_id}",
    response_model=List[AttendanceRead],
    summary="Các buổi vắng chưa được xếp học bù",
)
def get_eligible_absences(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.absences_eligible_for_compensation(student_id)


@router.put(
    "/{assignment_id}/complete",
    response_model=CompensationRead,
    summary="Đánh dấu học bù đã hoàn thành (tính một buổi có mặt)",
)
def complete_compensation(
    assignment_id: int,
    complete_in: Optional[CompensationComplete] = None,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.complete_compensation(assignment_id, complete_in)


@router.put("/{assignment_id}/cancel", response_model=CompensationRead, summary="Hủy lớp học bù")
def cancel_compensation(
    assignment_id: int,
    cancel_in: Optional[CompensationCancel] = None,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.cancel_compensation(assignment_id, cancel_in)
