from sqlalchemy.orm import relationship
from sqlalchemy import Boolean, Column, ForeignKey, Integer, DateTime, UniqueConstraint
from app.database import Base


class AttendanceRecord(Base):
    """
    Bản ghi điểm danh, chỉ được thêm mới (append-only).
    Bản ghi vắng mặt là đầu vào cho lớp học bù.
    """
    __tablename__ = "attendance_records"

    attendance_id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.subscription_id", ondelete="CASCADE"), nullable=False, index=True)
    # Định danh buổi học do hệ thống lịch học bên ngoài cấp
    class_session_id = Column(Integer, nullable=False)
    attended_at = Column(DateTime, nullable=False)
    was_present = Column(Boolean, nullable=False)

    # Khác None khi bản ghi được sinh ra từ việc hoàn thành buổi học bù
    compensation_id = Column(Integer, nullable=True, index=True)

    subscription = relationship("Subscription", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("subscription_id", "class_session_id", name="uq_attendance_subscription_session"),
    )

    def __repr__(self):
        return (
            f"<AttendanceRecord(subscription_id={self.subscription_id}, "
            f"class_session_id={self.class_session_id}, was_present={self.was_present})>"
        )
