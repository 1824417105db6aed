import pytest

from app.models.enrollment_model import EnrollmentStatus
from app.services.enrollment_service import EnrollmentManager
from app.services.ledger_errors import (
    DuplicateEnrollment,
    EnrollmentNotFound,
    InvalidPayload,
    InvalidTransition,
    StudentNotFound,
)


def test_request_creates_pending_enrollment(ledger, student):
    enrollment = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})

    assert enrollment.status == EnrollmentStatus.PENDING
    assert enrollment.decided_at is None
    assert enrollment.version == 1


def test_request_for_unknown_student(ledger):
    with pytest.raises(StudentNotFound):
        ledger.request_enrollment({"student_id": 999, "class_id": 10})


def test_request_rejects_malformed_payload(ledger):
    with pytest.raises(InvalidPayload) as exc:
        ledger.request_enrollment({"student_id": "abc"})
    assert exc.value.errors


def test_second_active_enrollment_for_same_class_is_rejected(ledger, student):
    ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})

    with pytest.raises(DuplicateEnrollment):
        ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})

    # Lớp khác vẫn được phép
    other = ledger.request_enrollment({"student_id": student.student_id, "class_id": 11})
    assert other.class_id == 11


def test_reject_then_approve_is_invalid_transition(ledger, student):
    enrollment = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})

    result = ledger.decide_enrollment(enrollment.enrollment_id, {"decision": "REJECT", "notes": "Lớp đầy"})
    assert result.enrollment.status == EnrollmentStatus.REJECTED
    assert result.subscription is None

    with pytest.raises(InvalidTransition):
        ledger.decide_enrollment(enrollment.enrollment_id, {"decision": "APPROVE"})

    current = ledger.get_enrollment(enrollment.enrollment_id)
    assert current.status == EnrollmentStatus.REJECTED
    assert current.admin_notes == "Lớp đầy"
    assert ledger.subscriptions_for_student(student.student_id) == []


def test_rejected_enrollment_frees_the_class_slot(ledger, student):
    enrollment = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})
    ledger.decide_enrollment(enrollment.enrollment_id, {"decision": "REJECT"})

    again = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})
    assert again.status == EnrollmentStatus.PENDING


def test_cancel_only_while_pending(ledger, student, approved):
    pending = ledger.request_enrollment({"student_id": student.student_id, "class_id": 12})
    cancelled = ledger.cancel_enrollment(pending.enrollment_id)
    assert cancelled.status == EnrollmentStatus.CANCELLED
    assert cancelled.cancelled_at is not None

    with pytest.raises(InvalidTransition):
        ledger.cancel_enrollment(pending.enrollment_id)
    with pytest.raises(InvalidTransition):
        ledger.cancel_enrollment(approved.enrollment.enrollment_id)


def test_unknown_enrollment(ledger):
    with pytest.raises(EnrollmentNotFound):
        ledger.decide_enrollment(404, {"decision": "APPROVE"})


def test_list_by_status_and_student(ledger, student):
    first = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})
    ledger.request_enrollment({"student_id": student.student_id, "class_id": 11})
    ledger.decide_enrollment(first.enrollment_id, {"decision": "REJECT"})

    pending = ledger.list_enrollments(EnrollmentStatus.PENDING)
    assert [e.class_id for e in pending] == [11]
    assert len(ledger.enrollments_for_student(student.student_id)) == 2


def test_direct_approve_outside_transaction_is_refused(ledger, student):
    pending = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})
    manager = EnrollmentManager(ledger.store)

    # APPROVE thiếu subscription đi kèm thì không được lưu
    with pytest.raises(InvalidTransition):
        manager.decide(pending.enrollment_id, "APPROVE")
    assert ledger.get_enrollment(pending.enrollment_id).status == EnrollmentStatus.PENDING
    assert ledger.subscriptions_for_student(student.student_id) == []

    rejected = manager.decide(pending.enrollment_id, "REJECT")
    assert rejected.status == EnrollmentStatus.REJECTED
