# app/schemas/attendance_schema.py
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional


class AttendanceCreate(BaseModel):
    """Schema để ghi nhận điểm danh cho một buổi học"""
    subscription_id: int
    class_session_id: int
    was_present: bool
    expected_version: Optional[int] = None


class AttendanceRead(BaseModel):
    """Schema để đọc dữ liệu trả về"""
    attendance_id: int
    subscription_id: int
    class_session_id: int
    attended_at: datetime
    was_present: bool
    compensation_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class AttendanceSummaryRead(BaseModel):
    """Thống kê chuyên cần của một subscription hoặc một học sinh"""
    subscription_id: Optional[int] = None
    student_id: Optional[int] = None
    total: int
    present: int
    absent: int
    percentage: float
