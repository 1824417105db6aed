from fastapi import APIRouter, Depends, status

from app.api.deps import get_ledger
from app.schemas.class_session_schema import ClassSessionCreate, ClassSessionRead
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


@router.post(
    "/",
    response_model=ClassSessionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Đăng ký hoặc cập nhật sức chứa của một buổi học",
)
def register_class_session(session_in: ClassSessionCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.register_class_session(session_in)
