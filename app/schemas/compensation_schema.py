# app/schemas/compensation_schema.py
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from app.models.compensation_model import CompensationStatus


class CompensationCreate(BaseModel):
    missed_attendance_id: int
    candidate_session_id: int
    reason: str = Field(..., min_length=1, max_length=500, example="Ốm")
    assigned_by: Optional[str] = Field("Admin", max_length=120)


class CompensationCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)
    expected_version: Optional[int] = None


class CompensationComplete(BaseModel):
    expected_version: Optional[int] = None


class CompensationRead(BaseModel):
    compensation_id: int
    student_id: int
    missed_attendance_id: int
    missed_class_id: int
    missed_date: date
    reason: str
    assigned_session_id: int
    status: CompensationStatus
    assigned_by: Optional[str] = None
    assigned_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    version: int

    model_config = ConfigDict(from_attributes=True)
