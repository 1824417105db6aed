from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_ledger
from app.schemas.fee_ledger_schema import (
    FeeLedgerCreate,
    FeeLedgerRead,
    FeeOverviewRead,
    FeeStatusRead,
    GatewayPaymentCallback,
    PaymentCreate,
    PaymentRead,
)
from app.models.fee_ledger_model import PaymentStatus
from app.services.ledger_facade import LedgerFacade

router = APIRouter()


@router.post(
    "/",
    response_model=FeeLedgerRead,
    status_code=status.HTTP_201_CREATED,
    summary="Mở hoặc điều chỉnh sổ học phí của học sinh",
)
def open_fee_ledger(ledger_in: FeeLedgerCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.open_fee_ledger(ledger_in)


@router.get("/", response_model=List[FeeStatusRead], summary="Danh sách trạng thái học phí, lọc theo trạng thái")
def list_fee_ledgers(
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 100,
    ledger: LedgerFacade = Depends(get_ledger),
):
    return ledger.list_fee_ledgers(payment_status, skip, limit)


@router.get("/overview", response_model=FeeOverviewRead, summary="Tổng quan thu học phí toàn trung tâm")
def get_fee_overview(ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.get_fee_overview()


# Đặt trước /{student_id}/... để không bị nuốt bởi path parameter
@router.post(
    "/gateway/callback",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Callback đã xác thực từ cổng thanh toán online",
)
def gateway_callback(callback_in: GatewayPaymentCallback, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.record_gateway_payment(callback_in)


@router.get("/{student_id}/status", response_model=FeeStatusRead, summary="Trạng thái học phí hiện tại")
def get_fee_status(student_id: int, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.get_fee_status(student_id)


@router.post(
    "/{student_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Admin ghi nhận một khoản thanh toán",
)
def record_payment(student_id: int, payment_in: PaymentCreate, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.record_payment(student_id, payment_in)


@router.post(
    "/{student_id}/payments/failed",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Lưu lại một giao dịch thất bại (không cấp biên lai)",
)
def record_failed_payment(
    student_id: int, payment_in: PaymentCreate, ledger: LedgerFacade = Depends(get_ledger)
):
    return ledger.record_failed_payment(student_id, payment_in)


@router.get("/{student_id}/payments", response_model=List[PaymentRead], summary="Lịch sử thanh toán")
def list_payments(student_id: int, skip: int = 0, limit: int = 100, ledger: LedgerFacade = Depends(get_ledger)):
    return ledger.list_payments(student_id, skip, limit)
