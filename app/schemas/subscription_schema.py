# app/schemas/subscription_schema.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from app.models.subscription_model import SubscriptionStatus


class SubscriptionRenew(BaseModel):
    """Bỏ trống thì dùng lại độ dài kỳ và số buổi của kỳ trước."""
    period_length_days: Optional[int] = Field(None, example=30)
    class_limit: Optional[int] = Field(None, example=8)


class SubscriptionRead(BaseModel):
    subscription_id: int
    student_id: int
    enrollment_id: int
    period_number: int
    period_start: datetime
    period_end: datetime
    class_limit: int
    classes_attended: int
    remaining_classes: int
    status: SubscriptionStatus
    version: int

    model_config = ConfigDict(from_attributes=True)
