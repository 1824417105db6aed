# app/schemas/student_schema.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class StudentCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=120, example="Nguyen Van A")
    email: Optional[EmailStr] = Field(None, example="a@example.com")
    phone: Optional[str] = Field(None, max_length=30, example="0901234567")


class StudentContactUpdate(BaseModel):
    """Chỉ thông tin liên hệ được phép thay đổi."""
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    expected_version: Optional[int] = None


class StudentRead(BaseModel):
    student_id: int
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: datetime
    version: int

    model_config = ConfigDict(from_attributes=True)
