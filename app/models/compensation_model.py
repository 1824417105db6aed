import enum
from sqlalchemy import Column, Integer, ForeignKey, Date, DateTime, Enum, String
from app.database import Base


class CompensationStatus(str, enum.Enum):
    ASSIGNED = "ASSIGNED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class CompensationAssignment(Base):
    """
    Model cho bảng compensation_assignments (lớp học bù).
    missed_attendance_id là UNIQUE: mỗi buổi vắng chỉ được xếp bù đúng một lần.
    """
    __tablename__ = "compensation_assignments"

    compensation_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.student_id", ondelete="CASCADE"), nullable=False, index=True)
    missed_attendance_id = Column(
        Integer,
        ForeignKey("attendance_records.attendance_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    missed_class_id = Column(Integer, nullable=False)
    missed_date = Column(Date, nullable=False)
    reason = Column(String(500), nullable=False)
    assigned_session_id = Column(Integer, nullable=False, index=True)
    status = Column(Enum(CompensationStatus, name="compensation_status"), default=CompensationStatus.ASSIGNED, nullable=False)

    assigned_by = Column(String(120), nullable=True)
    assigned_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(String(500), nullable=True)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return (
            f"<CompensationAssignment(missed_attendance_id={self.missed_attendance_id}, "
            f"assigned_session_id={self.assigned_session_id}, status={self.status})>"
        )
