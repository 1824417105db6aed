# app/schemas/class_session_schema.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ClassSessionCreate(BaseModel):
    session_id: int
    class_id: int
    starts_at: Optional[datetime] = None
    capacity: int = Field(..., ge=0)


class ClassSessionRead(ClassSessionCreate):
    model_config = ConfigDict(from_attributes=True)
