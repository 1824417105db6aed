from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.fee_ledger_model import PaymentRecordStatus, PaymentStatus
from app.services.fee_ledger_service import derive_status
from app.services.ledger_errors import (
    DuplicateTransaction,
    InvalidAmount,
    InvalidPayload,
    LedgerNotFound,
    OverpaymentRejected,
    StaleVersion,
)


@pytest.fixture
def fee_ledger(ledger, student):
    return ledger.open_fee_ledger(
        {"student_id": student.student_id, "total_fee": "15000", "due_date": "2026-04-01"}
    )


def pay(ledger, student_id, amount, transaction_id, method="UPI"):
    return ledger.record_payment(
        student_id, {"amount": amount, "method": method, "transaction_id": transaction_id}
    )


def test_derive_status():
    assert derive_status(Decimal("100"), Decimal("0")) == PaymentStatus.pending
    assert derive_status(Decimal("100"), Decimal("40")) == PaymentStatus.partial
    assert derive_status(Decimal("100"), Decimal("100")) == PaymentStatus.paid


def test_new_ledger_is_pending(ledger, student, fee_ledger):
    status = ledger.get_fee_status(student.student_id)

    assert status.total_fee == 15000
    assert status.paid_amount == 0
    assert status.remaining == 15000
    assert status.status == PaymentStatus.pending
    assert status.due_date == date(2026, 4, 1)
    assert status.overdue is False


def test_overpayment_is_rejected_then_exact_remainder_is_accepted(ledger, student, fee_ledger, clock):
    sid = student.student_id
    first = pay(ledger, sid, 5000, "TXN-1")
    assert first.receipt_number == f"RCP-{clock.now.year}-001"

    with pytest.raises(OverpaymentRejected):
        pay(ledger, sid, 11000, "TXN-2")

    status = ledger.get_fee_status(sid)
    assert status.paid_amount == 5000
    assert status.status == PaymentStatus.partial

    second = pay(ledger, sid, 10000, "TXN-3")
    assert second.receipt_number == f"RCP-{clock.now.year}-002"

    status = ledger.get_fee_status(sid)
    assert status.paid_amount == 15000
    assert status.remaining == 0
    assert status.status == PaymentStatus.paid


def test_duplicate_transaction_id_is_rejected(ledger, student, fee_ledger):
    pay(ledger, student.student_id, 1000, "TXN-1")

    with pytest.raises(DuplicateTransaction):
        pay(ledger, student.student_id, 1000, "TXN-1")
    assert ledger.get_fee_status(student.student_id).paid_amount == 1000
    assert len(ledger.list_payments(student.student_id)) == 1


@pytest.mark.parametrize("amount", [0, -50, "abc"])
def test_invalid_amounts(ledger, student, fee_ledger, amount):
    with pytest.raises((InvalidAmount, InvalidPayload)):
        pay(ledger, student.student_id, amount, "TXN-X")


def test_non_cash_payment_requires_transaction_id(ledger, student, fee_ledger):
    with pytest.raises(InvalidPayload):
        ledger.record_payment(student.student_id, {"amount": 100, "method": "CARD"})


def test_cash_payment_gets_generated_transaction_id(ledger, student, fee_ledger):
    payment = ledger.record_payment(student.student_id, {"amount": 100, "method": "CASH"})
    assert payment.transaction_id.startswith("CASH-")
    assert payment.receipt_number is not None


def test_payment_without_ledger(ledger, student):
    with pytest.raises(LedgerNotFound):
        pay(ledger, student.student_id, 100, "TXN-1")


def test_receipt_sequence_restarts_each_year(ledger, student, fee_ledger, clock):
    clock.now = datetime(2026, 12, 31, 10, 0)
    assert pay(ledger, student.student_id, 100, "TXN-1").receipt_number == "RCP-2026-001"
    assert pay(ledger, student.student_id, 100, "TXN-2").receipt_number == "RCP-2026-002"

    clock.now = datetime(2027, 1, 2, 8, 0)
    assert pay(ledger, student.student_id, 100, "TXN-3").receipt_number == "RCP-2027-001"


def test_failed_payment_keeps_balance_and_receipt_sequence(ledger, student, fee_ledger, clock):
    failed = ledger.record_failed_payment(
        student.student_id, {"amount": 2000, "method": "CARD", "transaction_id": "pay_fail_1"}
    )
    assert failed.status == PaymentRecordStatus.FAILED
    assert failed.receipt_number is None

    ok = pay(ledger, student.student_id, 2000, "pay_ok_1", method="CARD")
    assert ok.receipt_number == f"RCP-{clock.now.year}-001"
    assert ledger.get_fee_status(student.student_id).paid_amount == 2000

    with pytest.raises(DuplicateTransaction):
        pay(ledger, student.student_id, 2000, "pay_fail_1", method="CARD")


def test_gateway_callback_is_idempotent(ledger, student, fee_ledger):
    callback = {"student_id": student.student_id, "order_id": "order_1", "payment_id": "pay_1", "amount": 3000}
    payment = ledger.record_gateway_payment(callback)
    assert payment.transaction_id == "pay_1"
    assert payment.method.value == "ONLINE"

    with pytest.raises(DuplicateTransaction):
        ledger.record_gateway_payment(callback)
    assert ledger.get_fee_status(student.student_id).paid_amount == 3000


def test_overdue_flag(ledger, student, fee_ledger, clock):
    clock.now = datetime(2026, 4, 2, 9, 0)
    assert ledger.get_fee_status(student.student_id).overdue is True

    pay(ledger, student.student_id, 15000, "TXN-ALL")
    assert ledger.get_fee_status(student.student_id).overdue is False


def test_adjust_total_fee_not_below_paid(ledger, student, fee_ledger):
    pay(ledger, student.student_id, 5000, "TXN-1")

    with pytest.raises(InvalidAmount):
        ledger.open_fee_ledger({"student_id": student.student_id, "total_fee": 4000})

    adjusted = ledger.open_fee_ledger({"student_id": student.student_id, "total_fee": 20000})
    assert adjusted.total_fee == 20000
    assert adjusted.paid_amount == 5000


def test_sub_cent_amounts_are_rejected_not_rounded(ledger, student, fee_ledger):
    sid = student.student_id
    pay(ledger, sid, 5000, "TXN-1")

    # 10000.004 không được làm tròn thành 10000.00 để lọt qua kiểm tra trả thừa
    with pytest.raises(InvalidAmount):
        pay(ledger, sid, "10000.004", "TXN-2")
    with pytest.raises(InvalidAmount):
        pay(ledger, sid, "0.005", "TXN-3")
    assert ledger.get_fee_status(sid).paid_amount == 5000

    last = pay(ledger, sid, "10000.00", "TXN-4")
    assert last.amount == 10000
    assert ledger.get_fee_status(sid).status == PaymentStatus.paid


def test_clock_going_back_a_year_keeps_receipt_sequence(ledger, student, fee_ledger, clock):
    clock.now = datetime(2027, 1, 2, 8, 0)
    assert pay(ledger, student.student_id, 100, "TXN-1").receipt_number == "RCP-2027-001"

    clock.now = datetime(2026, 12, 31, 23, 0)
    assert pay(ledger, student.student_id, 100, "TXN-2").receipt_number == "RCP-2027-002"
    assert len(ledger.list_payments(student.student_id)) == 2


@pytest.fixture
def three_ledgers(ledger, student):
    """Ba học sinh: một đã nộp đủ, một nộp một phần, một chưa nộp."""
    partial = ledger.register_student({"full_name": "Tran Thi B", "email": "b@example.com"})
    pending = ledger.register_student({"full_name": "Le Van C", "email": "c@example.com"})
    for s, total in ((student, 15000), (partial, 10000), (pending, 8000)):
        ledger.open_fee_ledger({"student_id": s.student_id, "total_fee": total})
    pay(ledger, student.student_id, 15000, "TXN-PAID")
    pay(ledger, partial.student_id, 4000, "TXN-PART")
    return student, partial, pending


def test_list_ledgers_by_status(ledger, three_ledgers):
    paid, partial, pending = three_ledgers

    assert [s.student_id for s in ledger.list_fee_ledgers()] == [
        paid.student_id,
        partial.student_id,
        pending.student_id,
    ]
    assert [s.student_id for s in ledger.list_fee_ledgers("paid")] == [paid.student_id]
    assert [s.student_id for s in ledger.list_fee_ledgers("partial")] == [partial.student_id]
    only_pending = ledger.list_fee_ledgers(PaymentStatus.pending)
    assert [s.student_id for s in only_pending] == [pending.student_id]
    assert only_pending[0].remaining == 8000

    with pytest.raises(InvalidPayload):
        ledger.list_fee_ledgers("overdue")


def test_fee_overview(ledger, three_ledgers):
    overview = ledger.get_fee_overview()

    assert overview.total_students == 3
    assert overview.total_collection == 19000
    assert overview.total_pending == 6000 + 8000
    assert (overview.paid_count, overview.partial_count, overview.pending_count) == (1, 1, 1)


def test_fee_overview_without_ledgers(ledger):
    overview = ledger.get_fee_overview()
    assert overview.total_students == 0
    assert overview.total_collection == 0
    assert overview.pending_count == 0


def test_receipt_clash_is_stale_version_not_duplicate(ledger, student, fee_ledger, monkeypatch):
    def clash():
        raise IntegrityError(
            "INSERT INTO fee_payments", {},
            Exception("UNIQUE constraint failed: fee_payments.student_id, fee_payments.receipt_number"),
        )

    monkeypatch.setattr(ledger.store, "flush", clash)
    with pytest.raises(StaleVersion):
        pay(ledger, student.student_id, 100, "TXN-1")

    monkeypatch.undo()
    assert ledger.get_fee_status(student.student_id).paid_amount == 0
    assert pay(ledger, student.student_id, 100, "TXN-1").receipt_number.endswith("-001")
