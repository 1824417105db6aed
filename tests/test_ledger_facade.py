from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from app.crud import fee_ledger_crud
from app.crud.entity_store import EntityStore, translate_storage_error
from app.database import Base
from app.models.enrollment_model import Enrollment, EnrollmentStatus
from app.models.fee_ledger_model import FeeLedger
from app.models.subscription_model import Subscription, SubscriptionStatus
from app.services.enrollment_service import EnrollmentManager
from app.services.fee_ledger_service import FeeLedgerService
from app.services.ledger_errors import (
    AlreadyProvisioned,
    OverpaymentRejected,
    StaleVersion,
    StorageUnavailable,
)
from app.services.ledger_facade import LedgerFacade


def test_approve_rolls_back_when_provisioning_fails(ledger, db, student, clock):
    pending = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})
    # Kỳ subscription "mồ côi" làm cho việc cấp subscription thất bại
    db.add(Subscription(
        student_id=student.student_id,
        enrollment_id=pending.enrollment_id,
        period_number=1,
        period_start=clock.now,
        period_end=clock.now + timedelta(days=30),
        class_limit=8,
        classes_attended=0,
        status=SubscriptionStatus.ACTIVE,
    ))
    db.commit()

    with pytest.raises(AlreadyProvisioned):
        ledger.approve_enrollment_and_provision(pending.enrollment_id)

    current = ledger.get_enrollment(pending.enrollment_id)
    assert current.status == EnrollmentStatus.PENDING
    assert current.decided_at is None
    assert current.version == pending.version


def test_expected_version_mismatch(ledger, student):
    pending = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})

    with pytest.raises(StaleVersion):
        ledger.cancel_enrollment(pending.enrollment_id, {"expected_version": pending.version + 1})

    cancelled = ledger.cancel_enrollment(pending.enrollment_id, {"expected_version": pending.version})
    assert cancelled.status == EnrollmentStatus.CANCELLED
    assert cancelled.version == pending.version + 1


def test_update_student_contact(ledger, student):
    updated = ledger.update_student_contact(
        student.student_id, {"phone": "0909000111", "expected_version": student.version}
    )
    assert updated.phone == "0909000111"
    assert updated.email == "a@example.com"

    with pytest.raises(StaleVersion):
        ledger.update_student_contact(student.student_id, {"phone": "1", "expected_version": student.version})


@pytest.fixture
def file_sessions(tmp_path):
    """Hai phiên độc lập trên cùng một file sqlite để mô phỏng hai người ghi đồng thời."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    sessions = [Session(), Session(), Session()]
    yield sessions
    for session in sessions:
        session.close()
    engine.dispose()


def test_concurrent_writer_on_same_ledger_gets_stale_version(file_sessions):
    session_a, session_b, session_check = file_sessions
    setup = LedgerFacade(session_a)
    sid = setup.register_student({"full_name": "Tran Thi B"}).student_id
    setup.open_fee_ledger({"student_id": sid, "total_fee": 15000})

    # A đọc sổ học phí (version 1) rồi B ghi nhận thanh toán trước
    stale = session_a.get(FeeLedger, sid)
    assert stale.version == 1
    FeeLedgerService(EntityStore(session_b)).record_payment(sid, 5000, "UPI", "TXN-B")

    with pytest.raises(StaleVersion):
        FeeLedgerService(EntityStore(session_a)).open_ledger(sid, 20000)

    fresh = session_check.get(FeeLedger, sid)
    assert fresh.total_fee == Decimal("15000.00")
    assert fresh.paid_amount == Decimal("5000.00")
    assert fresh.version == 2


def test_concurrent_payments_issue_gap_free_receipts(file_sessions):
    session_a, session_b, session_check = file_sessions
    clock = lambda: datetime(2026, 5, 1, 9, 0)
    setup = LedgerFacade(session_a, clock=clock)
    sid = setup.register_student({"full_name": "Pham Van D"}).student_id
    setup.open_fee_ledger({"student_id": sid, "total_fee": 15000})

    # A đã đọc sổ học phí trước khi B ghi nhận thanh toán
    assert session_a.get(FeeLedger, sid).receipt_seq == 0
    first = FeeLedgerService(EntityStore(session_b), clock).record_payment(sid, 5000, "UPI", "TXN-B")
    assert first.receipt_number == "RCP-2026-001"

    service_a = FeeLedgerService(EntityStore(session_a), clock)
    try:
        second = service_a.record_payment(sid, 3000, "UPI", "TXN-A")
    except StaleVersion:
        # Bản đọc cũ bị từ chối; đọc lại rồi ghi
        second = service_a.record_payment(sid, 3000, "UPI", "TXN-A")
    assert second.receipt_number == "RCP-2026-002"

    payments = fee_ledger_crud.get_payments_by_student_id(session_check, sid)
    assert [p.receipt_number for p in payments] == ["RCP-2026-001", "RCP-2026-002"]
    ledger_row = session_check.get(FeeLedger, sid)
    assert ledger_row.paid_amount == Decimal("8000.00")
    assert ledger_row.receipt_seq == 2


def test_concurrent_decisions_on_same_enrollment(file_sessions):
    session_a, session_b, session_check = file_sessions
    setup = LedgerFacade(session_a)
    sid = setup.register_student({"full_name": "Le Van C"}).student_id
    eid = setup.request_enrollment({"student_id": sid, "class_id": 3}).enrollment_id

    stale = session_a.get(Enrollment, eid)
    assert stale.status == EnrollmentStatus.PENDING
    EnrollmentManager(EntityStore(session_b)).cancel(eid)

    with pytest.raises(StaleVersion):
        EnrollmentManager(EntityStore(session_a)).decide(eid, "REJECT")
    assert session_check.get(Enrollment, eid).status == EnrollmentStatus.CANCELLED


def test_storage_unavailable_is_retried_with_backoff(ledger, student, sleeps, monkeypatch):
    calls = []
    status = {
        "student_id": student.student_id,
        "total_fee": Decimal("100.00"),
        "paid_amount": Decimal("0.00"),
        "remaining": Decimal("100.00"),
        "status": "pending",
        "due_date": None,
        "overdue": False,
        "version": 1,
    }

    def flaky(student_id):
        calls.append(student_id)
        if len(calls) < 3:
            raise StorageUnavailable("connection reset")
        return status

    monkeypatch.setattr(ledger.fees, "get_status", flaky)

    result = ledger.get_fee_status(student.student_id)
    assert result.total_fee == 100
    assert len(calls) == 3
    assert sleeps == [pytest.approx(0.2), pytest.approx(0.4)]


def test_storage_unavailable_surfaces_after_retries(db, clock, student, monkeypatch):
    sleeps = []
    ledger = LedgerFacade(db, clock=clock, max_retries=2, backoff_seconds=0.1, sleep=sleeps.append)
    calls = []

    def down(student_id):
        calls.append(student_id)
        raise StorageUnavailable("timeout")

    monkeypatch.setattr(ledger.fees, "get_status", down)

    with pytest.raises(StorageUnavailable):
        ledger.get_fee_status(student.student_id)
    assert len(calls) == 3
    assert sleeps == [pytest.approx(0.1), pytest.approx(0.2)]


def test_domain_errors_are_not_retried(ledger, student, sleeps, monkeypatch):
    calls = []

    def rejected(student_id):
        calls.append(student_id)
        raise OverpaymentRejected("too much")

    monkeypatch.setattr(ledger.fees, "get_status", rejected)

    with pytest.raises(OverpaymentRejected):
        ledger.get_fee_status(student.student_id)
    assert len(calls) == 1
    assert sleeps == []


def test_translate_storage_error():
    assert isinstance(
        translate_storage_error(OperationalError("SELECT 1", {}, Exception("database is locked"))),
        StorageUnavailable,
    )
    assert translate_storage_error(IntegrityError("INSERT", {}, Exception("UNIQUE"))) is None
    assert translate_storage_error(ValueError("x")) is None
