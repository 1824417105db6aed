import enum
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from app.database import Base


class SubscriptionStatus(str, enum.Enum):
    """
    ACTIVE: còn buổi học trong kỳ.
    EXHAUSTED: đã dùng hết số buổi (classes_attended == class_limit).
    EXPIRED: đã quá period_end, không phụ thuộc số buổi.
    """
    ACTIVE = "ACTIVE"
    EXHAUSTED = "EXHAUSTED"
    EXPIRED = "EXPIRED"


class Subscription(Base):
    """
    Mô hình database cho bảng `subscriptions`.
    Mỗi lần gia hạn tạo một kỳ mới với period_number tăng dần.
    """
    __tablename__ = "subscriptions"

    subscription_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True)
    enrollment_id = Column(Integer, ForeignKey("enrollments.enrollment_id", ondelete="CASCADE"), nullable=False, index=True)
    period_number = Column(Integer, nullable=False, default=1)

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    class_limit = Column(Integer, nullable=False)
    classes_attended = Column(Integer, nullable=False, default=0)
    status = Column(Enum(SubscriptionStatus, name="subscription_status"), default=SubscriptionStatus.ACTIVE, nullable=False)

    version = Column(Integer, nullable=False)

    enrollment = relationship("Enrollment", back_populates="subscriptions")
    attendance_records = relationship("AttendanceRecord", back_populates="subscription")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        UniqueConstraint("enrollment_id", "period_number", name="uq_subscription_enrollment_period"),
        CheckConstraint("classes_attended >= 0 AND classes_attended <= class_limit", name="ck_subscription_attended_range"),
        CheckConstraint("class_limit > 0", name="ck_subscription_limit_positive"),
    )

    @property
    def remaining_classes(self) -> int:
        return self.class_limit - self.classes_attended

    def __repr__(self):
        return (
            f"<Subscription(subscription_id={self.subscription_id}, enrollment_id={self.enrollment_id}, "
            f"attended={self.classes_attended}/{self.class_limit}, status={self.status})>"
        )
