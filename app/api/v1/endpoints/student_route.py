from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_ledger
from app.schemas.student_schema import StudentContactUpdate, StudentCreate, StudentRead
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


@router.post(
    "/",
    response_model=StudentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Đăng ký hồ sơ học sinh mới",
)
def register_student(student_in: StudentCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.register_student(student_in)


@router.get("/", response_model=List[StudentRead], summary="Danh sách học sinh")
def list_students(skip: int = 0, limit: int = 100, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.list_students(skip, limit)


@router.get("/{student_id}", response_model=StudentRead, summary="Lấy thông tin học sinh")
def get_student(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.get_student(student_id)


@router.patch(
    "/{student_id}",
    response_model=StudentRead,
    summary="Cập nhật email / số điện thoại của học sinh",
)
def update_student_contact(
    student_id: int,
    contact_in: StudentContactUpdate,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.update_student_contact(student_id, contact_in)
