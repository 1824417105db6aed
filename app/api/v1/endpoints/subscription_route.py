from typing import List, Optional

from fastapi import APIRouter, Depends, status

from app.api.deps import get_ledger
from app.schemas.subscription_schema import SubscriptionRead, SubscriptionRenew
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


@router.get(
    "/student/{student_id}",
    response_model=List[SubscriptionRead],
    summary="Lấy toàn bộ các kỳ subscription của học sinh",
)
def get_subscriptions_for_student(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.subscriptions_for_student(student_id)


@router.get(
    "/student/{student_id}/active",
    response_model=List[SubscriptionRead],
    summary="Lấy các subscription còn hiệu lực của học sinh",
)
def get_active_subscriptions_for_student(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.subscriptions_for_student(student_id, active_only=True)


@router.get("/{subscription_id}", response_model=SubscriptionRead, summary="Lấy một subscription")
def get_subscription(subscription_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.get_subscription(subscription_id)


@router.post(
    "/enrollment/{enrollment_id}/renew",
    response_model=SubscriptionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Mở kỳ subscription mới khi kỳ trước đã hết hạn hoặc hết buổi",
)
def renew_subscription(
    enrollment_id: int,
    renew_in: Optional[SubscriptionRenew] = None,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.renew_subscription(enrollment_id, renew_in)
