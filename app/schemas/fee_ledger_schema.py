# app/schemas/fee_ledger_schema.py
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from app.models.fee_ledger_model import PaymentMethod, PaymentRecordStatus, PaymentStatus


class FeeLedgerCreate(BaseModel):
    student_id: int
    total_fee: Decimal = Field(..., example=15000)
    due_date: Optional[date] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., example=5000)
    method: PaymentMethod = Field(..., example="UPI")
    # Bắt buộc với thanh toán không dùng tiền mặt; tiền mặt sẽ được sinh tự động
    transaction_id: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = Field(None, max_length=500)
    expected_version: Optional[int] = None


class GatewayPaymentCallback(BaseModel):
    """
    Callback từ cổng thanh toán, đã được adapter xác thực chữ ký
    trên (order_id, payment_id) trước khi gọi vào ledger.
    """
    student_id: int
    order_id: str = Field(..., min_length=1, max_length=120)
    payment_id: str = Field(..., min_length=1, max_length=120)
    amount: Decimal
    succeeded: bool = True


class FeeLedgerRead(BaseModel):
    student_id: int
    total_fee: float
    paid_amount: float
    due_date: Optional[date] = None
    version: int

    model_config = ConfigDict(from_attributes=True)


class FeeStatusRead(BaseModel):
    student_id: int
    total_fee: float
    paid_amount: float
    remaining: float
    status: PaymentStatus
    due_date: Optional[date] = None
    overdue: bool = False
    version: int


class PaymentRead(BaseModel):
    payment_id: int
    student_id: int
    amount: float
    method: PaymentMethod
    transaction_id: str
    receipt_number: Optional[str] = None
    recorded_at: datetime
    status: PaymentRecordStatus
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FeeOverviewRead(BaseModel):
    total_students: int
    total_collection: float
    total_pending: float
    paid_count: int
    partial_count: int
    pending_count: int
