"""Enrollment approval state machine.

PENDING -> APPROVED | REJECTED | CANCELLED, cả ba đều là trạng thái cuối.
Việc cấp subscription khi APPROVE do LedgerFacade ghép vào cùng giao dịch.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.crud import enrollment_crud
from app.crud.entity_store import EntityStore
from app.models.enrollment_model import Enrollment, EnrollmentDecision, EnrollmentStatus
from app.models.student_model import Student
from app.services.ledger_errors import (
    DuplicateEnrollment,
    EnrollmentNotFound,
    InvalidTransition,
    StudentNotFound,
)
from app.services.service_helper import Clock, utcnow

logger = logging.getLogger(__name__)


class EnrollmentManager:
    def __init__(self, store: EntityStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def request_enrollment(self, student_id: int, class_id: int) -> Enrollment:
        """Học sinh gửi yêu cầu ghi danh; tạo bản ghi PENDING."""
        with self.store.transaction():
            self.store.require(Student, student_id, StudentNotFound)

            with self.store.guard():
                existing = enrollment_crud.get_active_enrollment(self.store.db, student_id, class_id)
            if existing:
                raise DuplicateEnrollment(
                    f"Học sinh {student_id} đã có enrollment {existing.status.value} cho lớp {class_id}."
                )

            enrollment = Enrollment(
                student_id=student_id,
                class_id=class_id,
                status=EnrollmentStatus.PENDING,
                created_at=self.clock(),
            )
            self.store.add(enrollment)
            try:
                self.store.flush()
            except IntegrityError as e:
                # Hai yêu cầu đồng thời: partial unique index chặn bản thứ hai
                raise DuplicateEnrollment(
                    f"Học sinh {student_id} đã có enrollment đang hoạt động cho lớp {class_id}."
                ) from e

        logger.info(f"Enrollment {enrollment.enrollment_id} PENDING: student={student_id}, class={class_id}")
        return enrollment

    def decide(
        self,
        enrollment_id: int,
        decision: EnrollmentDecision,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Enrollment:
        """
        APPROVE phải chạy bên trong giao dịch của người gọi, vì enrollment
        APPROVED luôn đi kèm subscription đầu tiên (xem
        LedgerFacade.approve_enrollment_and_provision). REJECT gọi độc lập được.
        """
        decision = EnrollmentDecision(decision)
        if decision == EnrollmentDecision.APPROVE and not self.store.in_transaction:
            raise InvalidTransition(
                f"APPROVE enrollment {enrollment_id} phải được cấp subscription trong cùng giao dịch."
            )
        with self.store.transaction():
            enrollment = self.store.get_for_update(
                Enrollment, enrollment_id, EnrollmentNotFound, expected_version
            )
            self._ensure_pending(enrollment, f"decide({decision.value})")

            enrollment.status = (
                EnrollmentStatus.APPROVED if decision == EnrollmentDecision.APPROVE else EnrollmentStatus.REJECTED
            )
            enrollment.decided_at = self.clock()
            if notes is not None:
                enrollment.admin_notes = notes
            self.store.flush()

        logger.info(f"Enrollment {enrollment_id} -> {enrollment.status.value}")
        return enrollment

    def cancel(self, enrollment_id: int, expected_version: Optional[int] = None) -> Enrollment:
        """Học sinh chỉ được hủy khi enrollment còn PENDING."""
        with self.store.transaction():
            enrollment = self.store.get_for_update(
                Enrollment, enrollment_id, EnrollmentNotFound, expected_version
            )
            self._ensure_pending(enrollment, "cancel")
            enrollment.status = EnrollmentStatus.CANCELLED
            enrollment.cancelled_at = self.clock()
            self.store.flush()

        logger.info(f"Enrollment {enrollment_id} -> CANCELLED")
        return enrollment

    @staticmethod
    def _ensure_pending(enrollment: Enrollment, action: str):
        if enrollment.status != EnrollmentStatus.PENDING:
            logger.warning(
                f"Từ chối {action} cho enrollment {enrollment.enrollment_id}: trạng thái {enrollment.status.value}"
            )
            raise InvalidTransition(
                f"Không thể {action} enrollment {enrollment.enrollment_id} ở trạng thái {enrollment.status.value}."
            )

    # --- Đọc ---
    def get(self, enrollment_id: int) -> Enrollment:
        return self.store.require(Enrollment, enrollment_id, EnrollmentNotFound)

    def list_for_student(self, student_id: int, skip: int = 0, limit: int = 100) -> List[Enrollment]:
        with self.store.guard():
            return enrollment_crud.get_enrollments_by_student_id(self.store.db, student_id, skip, limit)

    def list_by_status(
        self, status: Optional[EnrollmentStatus] = None, skip: int = 0, limit: int = 100
    ) -> List[Enrollment]:
        with self.store.guard():
            return enrollment_crud.get_enrollments(self.store.db, status, skip, limit)
