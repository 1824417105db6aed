from datetime import datetime
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Enum, Index, String, text
from sqlalchemy.orm import relationship
from app.database import Base
import enum


# Enum trạng thái enrollment
class EnrollmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class EnrollmentDecision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


# PENDING và APPROVED được coi là "đang hoạt động"
ACTIVE_ENROLLMENT_STATUSES = (EnrollmentStatus.PENDING, EnrollmentStatus.APPROVED)


class Enrollment(Base):
    __tablename__ = "enrollments"

    enrollment_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True)
    # class_id do hệ thống lớp học bên ngoài cấp, ledger coi là định danh mờ
    class_id = Column(Integer, nullable=False, index=True)

    status = Column(Enum(EnrollmentStatus, name="enrollment_status"), default=EnrollmentStatus.PENDING, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    decided_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    admin_notes = Column(String(500), nullable=True)

    version = Column(Integer, nullable=False)

    student = relationship("Student", back_populates="enrollments")
    subscriptions = relationship(
        "Subscription",
        back_populates="enrollment",
        order_by="Subscription.period_number",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        # Tối đa một enrollment đang hoạt động cho mỗi cặp (học sinh, lớp)
        Index(
            "uq_enrollment_active_student_class",
            "student_id",
            "class_id",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'APPROVED')"),
            postgresql_where=text("status IN ('PENDING', 'APPROVED')"),
        ),
    )

    def __repr__(self):
        return f"<Enrollment(student_id={self.student_id}, class_id={self.class_id}, status={self.status})>"
