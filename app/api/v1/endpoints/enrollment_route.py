from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_ledger
from app.models.enrollment_model import EnrollmentStatus
from app.schemas.enrollment_schema import (
    EnrollmentCancelRequest,
    EnrollmentCreate,
    EnrollmentDecisionRequest,
    EnrollmentDecisionResult,
    EnrollmentRead,
)
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


# --- Học sinh ---
@router.post(
    "/",
    response_model=EnrollmentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Học sinh gửi yêu cầu ghi danh vào một lớp",
)
def request_enrollment(enrollment_in: EnrollmentCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.request_enrollment(enrollment_in)


@router.put(
    "/{enrollment_id}/cancel",
    response_model=EnrollmentRead,
    summary="Học sinh hủy yêu cầu ghi danh còn PENDING",
)
def cancel_enrollment(
    enrollment_id: int,
    cancel_in: Optional[EnrollmentCancelRequest] = None,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.cancel_enrollment(enrollment_id, cancel_in)


@router.get(
    "/student/{student_id}",
    response_model=List[EnrollmentRead],
    summary="Lấy danh sách enrollment của một học sinh",
)
def get_enrollments_for_student(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.enrollments_for_student(student_id)


# --- Admin ---
@router.get("/", response_model=List[EnrollmentRead], summary="Lọc enrollment theo trạng thái")
def list_enrollments(
    status: Optional[EnrollmentStatus] = Query(None, description="PENDING, APPROVED, REJECTED, CANCELLED"),
    skip: int = 0,
    limit: int = 100,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.list_enrollments(status, skip, limit)


@router.get("/{enrollment_id}", response_model=EnrollmentRead, summary="Lấy một enrollment")
def get_enrollment(enrollment_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.get_enrollment(enrollment_id)


@router.put(
    "/{enrollment_id}/status",
    response_model=EnrollmentDecisionResult,
    summary="Admin duyệt (cấp subscription) hoặc từ chối enrollment",
)
def decide_enrollment(
    enrollment_id: int,
    decision_in: EnrollmentDecisionRequest,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.decide_enrollment(enrollment_id, decision_in)
