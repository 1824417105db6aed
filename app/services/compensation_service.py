"""Lớp học bù: mỗi buổi vắng được xếp bù tối đa một lần.

ASSIGNED -> COMPLETED (học sinh đã học bù) hoặc CANCELLED (admin rút lại).
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.crud import compensation_crud
from app.crud.entity_store import EntityStore
from app.models.attendance_model import AttendanceRecord
from app.models.compensation_model import CompensationAssignment, CompensationStatus
from app.models.enrollment_model import Enrollment
from app.models.subscription_model import Subscription
from app.services.ledger_errors import (
    AlreadyCompensated,
    AttendanceNotFound,
    CompensationNotFound,
    InvalidTransition,
    NotAbsent,
    SessionAtCapacity,
)
from app.services.service_helper import Clock, utcnow
from app.services.session_capacity import DbSessionCapacity, SessionCapacity
from app.services.subscription_service import SubscriptionTracker

logger = logging.getLogger(__name__)


class CompensationScheduler:
    def __init__(
        self,
        store: EntityStore,
        subscriptions: SubscriptionTracker,
        capacity: Optional[SessionCapacity] = None,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.subscriptions = subscriptions
        self.capacity = capacity or DbSessionCapacity()
        self.clock = clock

    def assign_compensation(
        self,
        missed_attendance_id: int,
        candidate_session_id: int,
        reason: str,
        assigned_by: Optional[str] = None,
    ) -> CompensationAssignment:
        with self.store.transaction():
            record = self.store.require(AttendanceRecord, missed_attendance_id, AttendanceNotFound)
            if record.was_present or record.compensation_id is not None:
                raise NotAbsent(f"Bản ghi điểm danh {missed_attendance_id} không phải một buổi vắng mặt.")

            with self.store.guard():
                existing = compensation_crud.get_by_missed_attendance_id(self.store.db, missed_attendance_id)
            if existing:
                raise AlreadyCompensated(
                    f"Buổi vắng {missed_attendance_id} đã được xếp bù (assignment {existing.compensation_id})."
                )

            if not self.capacity.has_capacity(self.store, candidate_session_id):
                raise SessionAtCapacity(f"Buổi học {candidate_session_id} đã đủ chỗ.")

            subscription = self.store.require(Subscription, record.subscription_id)
            enrollment = self.store.require(Enrollment, subscription.enrollment_id)

            assignment = CompensationAssignment(
                student_id=subscription.student_id,
                missed_attendance_id=missed_attendance_id,
                missed_class_id=enrollment.class_id,
                missed_date=record.attended_at.date(),
                reason=reason,
                assigned_session_id=candidate_session_id,
                status=CompensationStatus.ASSIGNED,
                assigned_by=assigned_by,
                assigned_at=self.clock(),
            )
            self.store.add(assignment)
            try:
                self.store.flush()
            except IntegrityError as e:
                # Unique constraint trên missed_attendance_id chặn yêu cầu đồng thời
                raise AlreadyCompensated(f"Buổi vắng {missed_attendance_id} đã được xếp bù.") from e

        logger.info(
            f"Xếp học bù {assignment.compensation_id}: buổi vắng {missed_attendance_id} -> buổi {candidate_session_id}"
        )
        return assignment

    def complete_compensation(
        self, assignment_id: int, expected_version: Optional[int] = None
    ) -> CompensationAssignment:
        """
        Đánh dấu COMPLETED và ghi một bản ghi "có mặt" vào subscription gốc,
        nên buổi học bù được tính vào classes_attended như buổi thường.
        Nếu subscription không nhận thêm buổi, toàn bộ thao tác bị hủy.
        """
        with self.store.transaction():
            assignment = self._load_assigned(assignment_id, "complete", expected_version)
            missed = self.store.require(AttendanceRecord, assignment.missed_attendance_id, AttendanceNotFound)

            self.subscriptions.record_attendance(
                missed.subscription_id,
                assignment.assigned_session_id,
                was_present=True,
                compensation_id=assignment.compensation_id,
            )
            assignment.status = CompensationStatus.COMPLETED
            assignment.completed_at = self.clock()
            self.store.flush()

        logger.info(f"Học bù {assignment_id} -> COMPLETED")
        return assignment

    def cancel_compensation(
        self, assignment_id: int, reason: Optional[str] = None, expected_version: Optional[int] = None
    ) -> CompensationAssignment:
        """Admin rút lại lịch học bù; không ảnh hưởng số buổi đã học."""
        with self.store.transaction():
            assignment = self._load_assigned(assignment_id, "cancel", expected_version)
            assignment.status = CompensationStatus.CANCELLED
            assignment.cancelled_at = self.clock()
            assignment.cancel_reason = reason
            self.store.flush()

        logger.info(f"Học bù {assignment_id} -> CANCELLED")
        return assignment

    def _load_assigned(
        self, assignment_id: int, action: str, expected_version: Optional[int]
    ) -> CompensationAssignment:
        assignment = self.store.get_for_update(
            CompensationAssignment, assignment_id, CompensationNotFound, expected_version
        )
        if assignment.status != CompensationStatus.ASSIGNED:
            raise InvalidTransition(
                f"Không thể {action} học bù {assignment_id} ở trạng thái {assignment.status.value}."
            )
        return assignment

    # --- Đọc ---
    def get(self, assignment_id: int) -> CompensationAssignment:
        return self.store.require(CompensationAssignment, assignment_id, CompensationNotFound)

    def list_assignments(
        self,
        student_id: Optional[int] = None,
        status: Optional[CompensationStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[CompensationAssignment]:
        with self.store.guard():
            return compensation_crud.get_assignments(self.store.db, student_id, status, skip, limit)
