"""Subscription periods, class limits and attendance consumption."""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from app.config import DEFAULT_CLASS_LIMIT, DEFAULT_PERIOD_DAYS
from app.crud import attendance_crud, subscription_crud
from app.crud.entity_store import EntityStore
from app.models.attendance_model import AttendanceRecord
from app.models.enrollment_model import Enrollment, EnrollmentStatus
from app.models.subscription_model import Subscription, SubscriptionStatus
from app.services.ledger_errors import (
    AlreadyProvisioned,
    DuplicateAttendance,
    EnrollmentNotFound,
    InvalidLimit,
    InvalidPayload,
    InvalidTransition,
    SubscriptionExhausted,
    SubscriptionExpired,
    SubscriptionNotFound,
)
from app.services.service_helper import Clock, utcnow

logger = logging.getLogger(__name__)


def validate_limits(period_length_days: int, class_limit: int):
    if period_length_days is None or int(period_length_days) < 1:
        raise InvalidLimit(f"Độ dài kỳ phải >= 1 ngày, nhận {period_length_days}.")
    if class_limit is None or int(class_limit) < 1:
        raise InvalidLimit(f"Số buổi tối đa phải >= 1, nhận {class_limit}.")


def effective_status(subscription: Subscription, now: datetime) -> SubscriptionStatus:
    """
    EXPIRED khi now > period_end, không phụ thuộc số buổi đã học;
    ngược lại là trạng thái đang lưu.
    """
    if now > subscription.period_end:
        return SubscriptionStatus.EXPIRED
    return subscription.status


class SubscriptionTracker:
    def __init__(self, store: EntityStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    def provision(
        self,
        enrollment_id: int,
        period_length_days: int = DEFAULT_PERIOD_DAYS,
        class_limit: int = DEFAULT_CLASS_LIMIT,
    ) -> Subscription:
        """Cấp subscription đầu tiên (period_number = 1) cho enrollment đã APPROVED."""
        validate_limits(period_length_days, class_limit)
        with self.store.transaction():
            enrollment = self.store.require(Enrollment, enrollment_id, EnrollmentNotFound)
            if enrollment.status != EnrollmentStatus.APPROVED:
                raise InvalidTransition(
                    f"Chỉ cấp subscription cho enrollment APPROVED, enrollment {enrollment_id} đang {enrollment.status.value}."
                )

            with self.store.guard():
                existing = subscription_crud.count_for_enrollment(self.store.db, enrollment_id)
            if existing:
                raise AlreadyProvisioned(f"Enrollment {enrollment_id} đã có subscription.")

            subscription = self._open_period(enrollment, 1, period_length_days, class_limit)

        logger.info(
            f"Subscription {subscription.subscription_id} ACTIVE cho enrollment {enrollment_id} "
            f"({class_limit} buổi / {period_length_days} ngày)"
        )
        return subscription

    def renew(
        self,
        enrollment_id: int,
        period_length_days: Optional[int] = None,
        class_limit: Optional[int] = None,
    ) -> Subscription:
        """
        Mở kỳ mới khi kỳ gần nhất đã EXPIRED hoặc EXHAUSTED.
        Số buổi chưa dùng của kỳ cũ bị hủy, không cộng dồn.
        """
        with self.store.transaction():
            enrollment = self.store.require(Enrollment, enrollment_id, EnrollmentNotFound)
            if enrollment.status != EnrollmentStatus.APPROVED:
                raise InvalidTransition(f"Enrollment {enrollment_id} không ở trạng thái APPROVED.")

            with self.store.guard():
                latest = subscription_crud.get_latest_for_enrollment(self.store.db, enrollment_id)
            if latest is None:
                raise InvalidTransition(f"Enrollment {enrollment_id} chưa được cấp subscription.")

            latest = self.store.get_for_update(Subscription, latest.subscription_id, SubscriptionNotFound)
            now = self.clock()
            status = effective_status(latest, now)
            if status == SubscriptionStatus.ACTIVE:
                raise InvalidTransition(
                    f"Subscription {latest.subscription_id} vẫn còn ACTIVE, chưa thể gia hạn."
                )
            if latest.status != status:
                latest.status = status

            if period_length_days is None:
                period_length_days = (latest.period_end - latest.period_start).days or DEFAULT_PERIOD_DAYS
            if class_limit is None:
                class_limit = latest.class_limit
            validate_limits(period_length_days, class_limit)

            forfeited = latest.class_limit - latest.classes_attended
            subscription = self._open_period(enrollment, latest.period_number + 1, period_length_days, class_limit)

        logger.info(
            f"Gia hạn enrollment {enrollment_id}: kỳ {subscription.period_number}, "
            f"hủy {forfeited} buổi chưa dùng của kỳ trước"
        )
        return subscription

    def _open_period(
        self, enrollment: Enrollment, period_number: int, period_length_days: int, class_limit: int
    ) -> Subscription:
        now = self.clock()
        subscription = Subscription(
            student_id=enrollment.student_id,
            enrollment_id=enrollment.enrollment_id,
            period_number=period_number,
            period_start=now,
            period_end=now + timedelta(days=int(period_length_days)),
            class_limit=int(class_limit),
            classes_attended=0,
            status=SubscriptionStatus.ACTIVE,
        )
        self.store.add(subscription)
        try:
            self.store.flush()
        except IntegrityError as e:
            raise AlreadyProvisioned(
                f"Enrollment {enrollment.enrollment_id} đã có kỳ subscription số {period_number}."
            ) from e
        return subscription

    def record_attendance(
        self,
        subscription_id: int,
        class_session_id: int,
        was_present: bool,
        compensation_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> AttendanceRecord:
        """
        Ghi nhận điểm danh. Có mặt thì tăng classes_attended và chuyển
        EXHAUSTED khi chạm giới hạn; vắng mặt không đổi trạng thái nhưng
        trở thành đầu vào cho lớp học bù.
        """
        with self.store.transaction():
            subscription = self.store.get_for_update(
                Subscription, subscription_id, SubscriptionNotFound, expected_version
            )
            now = self.clock()

            if effective_status(subscription, now) == SubscriptionStatus.EXPIRED:
                logger.warning(f"Từ chối điểm danh: subscription {subscription_id} đã hết hạn")
                raise SubscriptionExpired(
                    f"Subscription {subscription_id} đã hết hạn từ {subscription.period_end:%d/%m/%Y}."
                )
            if was_present and subscription.classes_attended >= subscription.class_limit:
                logger.warning(f"Từ chối điểm danh: subscription {subscription_id} đã dùng hết số buổi")
                raise SubscriptionExhausted(
                    f"Subscription {subscription_id} đã dùng hết {subscription.class_limit} buổi."
                )

            with self.store.guard():
                duplicate = attendance_crud.get_attendance_record(self.store.db, subscription_id, class_session_id)
            if duplicate:
                raise DuplicateAttendance(
                    f"Buổi học {class_session_id} đã được điểm danh cho subscription {subscription_id}."
                )

            record = AttendanceRecord(
                subscription_id=subscription_id,
                class_session_id=class_session_id,
                attended_at=now,
                was_present=bool(was_present),
                compensation_id=compensation_id,
            )
            self.store.add(record)

            if was_present:
                subscription.classes_attended += 1
                if subscription.classes_attended == subscription.class_limit:
                    subscription.status = SubscriptionStatus.EXHAUSTED

            try:
                self.store.flush()
            except IntegrityError as e:
                raise DuplicateAttendance(
                    f"Buổi học {class_session_id} đã được điểm danh cho subscription {subscription_id}."
                ) from e

        logger.info(
            f"Điểm danh subscription {subscription_id}, buổi {class_session_id}: "
            f"{'có mặt' if was_present else 'vắng'} ({subscription.classes_attended}/{subscription.class_limit})"
        )
        return record

    def expire_lapsed(self) -> int:
        """Ghi trạng thái EXPIRED cho các subscription đã quá hạn. Trả về số bản ghi cập nhật."""
        now = self.clock()
        with self.store.transaction():
            with self.store.guard():
                lapsed = subscription_crud.get_lapsed_subscriptions(self.store.db, now)
            for subscription in lapsed:
                subscription.status = SubscriptionStatus.EXPIRED
            self.store.flush()
        if lapsed:
            logger.info(f"Đã đánh dấu EXPIRED cho {len(lapsed)} subscription")
        return len(lapsed)

    # --- Đọc ---
    def get(self, subscription_id: int) -> Subscription:
        return self.store.require(Subscription, subscription_id, SubscriptionNotFound)

    def list_for_student(self, student_id: int) -> List[Subscription]:
        with self.store.guard():
            return subscription_crud.get_subscriptions_by_student_id(self.store.db, student_id)

    def active_for_student(self, student_id: int) -> List[Subscription]:
        with self.store.guard():
            return subscription_crud.get_active_subscriptions_by_student_id(
                self.store.db, student_id, self.clock()
            )

    def attendance_for_subscription(self, subscription_id: int) -> List[AttendanceRecord]:
        self.get(subscription_id)
        with self.store.guard():
            return attendance_crud.get_records_by_subscription_id(self.store.db, subscription_id)

    def attendance_for_student(self, student_id: int, skip: int = 0, limit: int = 100) -> List[AttendanceRecord]:
        with self.store.guard():
            return attendance_crud.get_records_by_student_id(self.store.db, student_id, skip, limit)

    def absences_without_compensation(self, student_id: int) -> List[AttendanceRecord]:
        with self.store.guard():
            return attendance_crud.get_absences_without_compensation(self.store.db, student_id)

    def attendance_summary(self, subscription_id: Optional[int] = None, student_id: Optional[int] = None) -> dict:
        """
        Thống kê chuyên cần: tổng số buổi, có mặt, vắng và tỷ lệ có mặt (%).
        Tỷ lệ làm tròn 1 chữ số thập phân, bằng 0 khi chưa có buổi nào.
        """
        if subscription_id is None and student_id is None:
            raise InvalidPayload("Cần subscription_id hoặc student_id để thống kê chuyên cần.")
        if subscription_id is not None:
            self.get(subscription_id)
        with self.store.guard():
            total, present = attendance_crud.count_attendance(
                self.store.db, subscription_id=subscription_id, student_id=student_id
            )
        return {
            "subscription_id": subscription_id,
            "student_id": student_id,
            "total": total,
            "present": present,
            "absent": total - present,
            "percentage": round(present / total * 100, 1) if total else 0.0,
        }
