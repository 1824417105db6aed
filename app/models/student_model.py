from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from app.database import Base


class Student(Base):
    """
    Model cho bảng students.
    Danh tính do hệ thống tài khoản sở hữu; ledger chỉ tham chiếu theo khóa.
    """
    __tablename__ = "students"

    student_id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(120), nullable=False)

    # Thông tin liên hệ có thể thay đổi
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    enrollments = relationship("Enrollment", back_populates="student")
    fee_ledger = relationship("FeeLedger", uselist=False, back_populates="student")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Student(student_id={self.student_id}, full_name='{self.full_name}')>"
