# app/crud/fee_ledger_crud.py
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.fee_ledger_model import FeeLedger, FeePayment, PaymentStatus


def get_payment_by_transaction(db: Session, student_id: int, transaction_id: str) -> Optional[FeePayment]:
    """Tìm giao dịch theo idempotency key (transaction_id) của một học sinh."""
    stmt = select(FeePayment).where(
        FeePayment.student_id == student_id,
        FeePayment.transaction_id == transaction_id,
    )
    return db.execute(stmt).scalars().first()


def get_payments_by_student_id(db: Session, student_id: int, skip: int = 0, limit: int = 100) -> List[FeePayment]:
    stmt = (
        select(FeePayment)
        .where(FeePayment.student_id == student_id)
        .order_by(FeePayment.payment_id)
        .offset(skip)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def get_ledgers(
    db: Session, status: Optional[PaymentStatus] = None, skip: int = 0, limit: Optional[int] = 100
) -> List[FeeLedger]:
    """Lấy sổ học phí của mọi học sinh, có thể lọc theo trạng thái dẫn xuất."""
    stmt = select(FeeLedger)
    if status == PaymentStatus.paid:
        stmt = stmt.where(FeeLedger.paid_amount >= FeeLedger.total_fee)
    elif status == PaymentStatus.partial:
        stmt = stmt.where(FeeLedger.paid_amount > 0, FeeLedger.paid_amount < FeeLedger.total_fee)
    elif status == PaymentStatus.pending:
        stmt = stmt.where(FeeLedger.paid_amount <= 0)
    stmt = stmt.order_by(FeeLedger.student_id).offset(skip).limit(limit)
    return list(db.execute(stmt).scalars().all())
