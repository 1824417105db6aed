"""Fee ledger: tổng học phí, lịch sử thanh toán, số biên lai và trạng thái dẫn xuất."""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.crud import fee_ledger_crud
from app.crud.entity_store import EntityStore
from app.models.fee_ledger_model import (
    FeeLedger,
    FeePayment,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
)
from app.models.student_model import Student
from app.services.ledger_errors import (
    DuplicateTransaction,
    InvalidAmount,
    InvalidPayload,
    LedgerNotFound,
    OverpaymentRejected,
    StaleVersion,
    StudentNotFound,
)
from app.services.service_helper import Clock, format_receipt_number, to_money, utcnow

logger = logging.getLogger(__name__)


def derive_status(total_fee: Decimal, paid_amount: Decimal) -> PaymentStatus:
    if paid_amount >= total_fee:
        return PaymentStatus.paid
    if paid_amount > 0:
        return PaymentStatus.partial
    return PaymentStatus.pending


class FeeLedgerService:
    def __init__(self, store: EntityStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def open_ledger(self, student_id: int, total_fee, due_date: Optional[date] = None) -> FeeLedger:
        """
        Tạo sổ học phí cho học sinh, hoặc điều chỉnh tổng phí / hạn nộp nếu đã có.
        Tổng phí mới không được nhỏ hơn số tiền đã nộp.
        """
        total_fee = to_money(total_fee)
        if total_fee <= 0:
            raise InvalidAmount(f"Tổng học phí phải > 0, nhận {total_fee}.")

        with self.store.transaction():
            self.store.require(Student, student_id, StudentNotFound)
            with self.store.guard():
                ledger = self.store.db.get(FeeLedger, student_id, with_for_update=True)

            if ledger is None:
                ledger = FeeLedger(
                    student_id=student_id,
                    total_fee=total_fee,
                    paid_amount=Decimal("0.00"),
                    due_date=due_date,
                    receipt_seq=0,
                )
                self.store.add(ledger)
            else:
                if total_fee < ledger.paid_amount:
                    raise InvalidAmount(
                        f"Tổng học phí {total_fee} nhỏ hơn số đã nộp {ledger.paid_amount}."
                    )
                ledger.total_fee = total_fee
                if due_date is not None:
                    ledger.due_date = due_date
            self.store.flush()

        logger.info(f"Sổ học phí học sinh {student_id}: tổng {total_fee}, hạn {due_date}")
        return ledger

    def record_payment(
        self,
        student_id: int,
        amount,
        method: PaymentMethod,
        transaction_id: str,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> FeePayment:
        """
        Ghi nhận một khoản thanh toán thành công.

        Khoản vượt quá số còn lại bị từ chối nguyên vẹn (không cắt bớt):
        người gọi phải gửi lại đúng số tiền còn thiếu. Số biên lai được
        cấp tuần tự theo học sinh và reset theo năm dương lịch.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"Số tiền thanh toán phải > 0, nhận {amount}.")
        method = PaymentMethod(method)

        with self.store.transaction():
            ledger = self.store.get_for_update(FeeLedger, student_id, LedgerNotFound, expected_version)
            self._ensure_new_transaction(student_id, transaction_id)

            if ledger.paid_amount + amount > ledger.total_fee:
                remaining = ledger.total_fee - ledger.paid_amount
                logger.warning(
                    f"Từ chối thanh toán {amount} cho học sinh {student_id}: chỉ còn thiếu {remaining}"
                )
                raise OverpaymentRejected(
                    f"Thanh toán {amount} vượt quá số còn thiếu {remaining} (tổng {ledger.total_fee})."
                )

            now = self.clock()
            receipt_number = self._next_receipt_number(ledger, now.year)
            ledger.paid_amount = ledger.paid_amount + amount

            payment = FeePayment(
                student_id=student_id,
                amount=amount,
                method=method,
                transaction_id=transaction_id,
                receipt_number=receipt_number,
                recorded_at=now,
                status=PaymentRecordStatus.SUCCESS,
                notes=notes,
            )
            self.store.add(payment)
            self._flush_payment(student_id, transaction_id)

        logger.info(
            f"Thanh toán {amount} ({method.value}) cho học sinh {student_id}, biên lai {receipt_number}"
        )
        return payment

    def record_failed_payment(
        self,
        student_id: int,
        amount,
        method: PaymentMethod,
        transaction_id: str,
        notes: Optional[str] = None,
    ) -> FeePayment:
        """Lưu lại giao dịch thất bại từ cổng thanh toán; không cấp biên lai, không đổi số đã nộp."""
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"Số tiền thanh toán phải > 0, nhận {amount}.")
        method = PaymentMethod(method)

        with self.store.transaction():
            self.store.require(FeeLedger, student_id, LedgerNotFound)
            self._ensure_new_transaction(student_id, transaction_id)
            payment = FeePayment(
                student_id=student_id,
                amount=amount,
                method=method,
                transaction_id=transaction_id,
                receipt_number=None,
                recorded_at=self.clock(),
                status=PaymentRecordStatus.FAILED,
                notes=notes,
            )
            self.store.add(payment)
            self._flush_payment(student_id, transaction_id)

        logger.warning(f"Giao dịch {transaction_id} của học sinh {student_id} thất bại")
        return payment

    def _ensure_new_transaction(self, student_id: int, transaction_id: str):
        if not transaction_id or not str(transaction_id).strip():
            raise InvalidPayload("Thiếu transaction_id cho khoản thanh toán.")
        with self.store.guard():
            existing = fee_ledger_crud.get_payment_by_transaction(self.store.db, student_id, transaction_id)
        if existing:
            raise DuplicateTransaction(
                f"Giao dịch {transaction_id} đã được ghi nhận cho học sinh {student_id}."
            )

    def _flush_payment(self, student_id: int, transaction_id: str):
        try:
            self.store.flush()
        except IntegrityError as e:
            # Trùng số biên lai nghĩa là một giao dịch khác vừa cấp số này, không phải trùng transaction_id
            if "receipt" in str(e.orig).lower():
                raise StaleVersion(
                    f"Số biên lai của học sinh {student_id} vừa được cấp bởi giao dịch khác, hãy thử lại."
                ) from e
            raise DuplicateTransaction(
                f"Giao dịch {transaction_id} đã được ghi nhận cho học sinh {student_id}."
            ) from e

    @staticmethod
    def _next_receipt_number(ledger: FeeLedger, year: int) -> str:
        # Bộ đếm nằm trên dòng ledger nên tăng cùng version với paid_amount.
        # Năm chỉ tiến lên: đồng hồ lùi không được reset dãy số đã cấp.
        if ledger.receipt_year is None or year > ledger.receipt_year:
            ledger.receipt_year = year
            ledger.receipt_seq = 0
        ledger.receipt_seq += 1
        return format_receipt_number(ledger.receipt_year, ledger.receipt_seq)

    # --- Đọc ---
    def get_ledger(self, student_id: int) -> FeeLedger:
        return self.store.require(FeeLedger, student_id, LedgerNotFound)

    def get_status(self, student_id: int) -> dict:
        """Đọc thuần, không có tác dụng phụ."""
        return self._status_view(self.get_ledger(student_id))

    def _status_view(self, ledger: FeeLedger) -> dict:
        total_fee = to_money(ledger.total_fee)
        paid_amount = to_money(ledger.paid_amount)
        status = derive_status(total_fee, paid_amount)
        today = self.clock().date()
        return {
            "student_id": ledger.student_id,
            "total_fee": total_fee,
            "paid_amount": paid_amount,
            "remaining": total_fee - paid_amount,
            "status": status,
            "due_date": ledger.due_date,
            "overdue": bool(ledger.due_date and ledger.due_date < today and status != PaymentStatus.paid),
            "version": ledger.version,
        }

    def list_ledgers(self, status=None, skip: int = 0, limit: int = 100) -> List[dict]:
        """Danh sách trạng thái học phí của các học sinh, lọc theo paid / partial / pending."""
        if status is not None:
            try:
                status = PaymentStatus(status)
            except ValueError:
                raise InvalidPayload(f"Trạng thái học phí không hợp lệ: {status!r}")
        with self.store.guard():
            ledgers = fee_ledger_crud.get_ledgers(self.store.db, status, skip, limit)
        return [self._status_view(ledger) for ledger in ledgers]

    def overview(self) -> dict:
        """
        Tổng quan học phí toàn trung tâm: số học sinh có sổ học phí,
        tổng đã thu, tổng còn phải thu và số sổ theo từng trạng thái.
        """
        with self.store.guard():
            ledgers = fee_ledger_crud.get_ledgers(self.store.db, limit=None)

        total_collection = Decimal("0.00")
        total_pending = Decimal("0.00")
        counts = {status: 0 for status in PaymentStatus}
        for ledger in ledgers:
            total_fee = to_money(ledger.total_fee)
            paid_amount = to_money(ledger.paid_amount)
            total_collection += paid_amount
            total_pending += total_fee - paid_amount
            counts[derive_status(total_fee, paid_amount)] += 1

        return {
            "total_students": len(ledgers),
            "total_collection": total_collection,
            "total_pending": total_pending,
            "paid_count": counts[PaymentStatus.paid],
            "partial_count": counts[PaymentStatus.partial],
            "pending_count": counts[PaymentStatus.pending],
        }

    def list_payments(self, student_id: int, skip: int = 0, limit: int = 100) -> List[FeePayment]:
        self.get_ledger(student_id)
        with self.store.guard():
            return fee_ledger_crud.get_payments_by_student_id(self.store.db, student_id, skip, limit)
