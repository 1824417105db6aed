import enum
from sqlalchemy import (
    CheckConstraint, Column, Integer, Numeric, DateTime, Enum, ForeignKey, Date, String, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.database import Base
from datetime import datetime


class PaymentStatus(str, enum.Enum):
    """
    Trạng thái dẫn xuất của sổ học phí (không lưu trong DB).
    """
    pending = "pending"
    partial = "partial"
    paid = "paid"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"
    NETBANKING = "NETBANKING"
    ONLINE = "ONLINE"


class PaymentRecordStatus(str, enum.Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class FeeLedger(Base):
    """
    Mô hình database cho bảng `fee_ledgers`.
    Bộ đếm số biên lai nằm trên chính dòng ledger để dùng chung version check.
    """
    __tablename__ = "fee_ledgers"

    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), primary_key=True)
    total_fee = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    due_date = Column(Date, nullable=True)

    receipt_year = Column(Integer, nullable=True)
    receipt_seq = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version = Column(Integer, nullable=False)

    student = relationship("Student", back_populates="fee_ledger")
    payments = relationship(
        "FeePayment",
        back_populates="ledger",
        order_by="FeePayment.payment_id",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        CheckConstraint("paid_amount >= 0 AND paid_amount <= total_fee", name="ck_fee_ledger_paid_range"),
    )

    def __repr__(self):
        return f"<FeeLedger(student_id={self.student_id}, paid={self.paid_amount}/{self.total_fee})>"


class FeePayment(Base):
    """
    Mô hình database cho bảng `fee_payments` (append-only).
    """
    __tablename__ = "fee_payments"

    payment_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("fee_ledgers.student_id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(Enum(PaymentMethod, name="payment_method"), nullable=False)
    transaction_id = Column(String(120), nullable=False)
    # Chỉ giao dịch SUCCESS mới có số biên lai
    receipt_number = Column(String(20), nullable=True)
    recorded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(Enum(PaymentRecordStatus, name="payment_record_status"), nullable=False)
    notes = Column(String(500), nullable=True)

    ledger = relationship("FeeLedger", back_populates="payments")

    __table_args__ = (
        UniqueConstraint("student_id", "transaction_id", name="uq_fee_payment_transaction"),
        UniqueConstraint("student_id", "receipt_number", name="uq_fee_payment_receipt"),
    )

    def __repr__(self):
        return (
            f"<FeePayment(student_id={self.student_id}, amount={self.amount}, "
            f"receipt={self.receipt_number}, status={self.status})>"
        )
