from sqlalchemy import Column, Integer, DateTime
from app.database import Base


class ClassSession(Base):
    """
    Ảnh chụp buổi học do hệ thống lịch học bên ngoài cung cấp.
    Ledger chỉ đọc sức chứa, không sở hữu lịch học.
    """
    __tablename__ = "class_sessions"

    session_id = Column(Integer, primary_key=True, autoincrement=False)
    class_id = Column(Integer, nullable=False, index=True)
    starts_at = Column(DateTime, nullable=True)
    capacity = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<ClassSession(session_id={self.session_id}, class_id={self.class_id}, capacity={self.capacity})>"
