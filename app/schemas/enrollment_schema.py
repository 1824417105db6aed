# app/schemas/enrollment_schema.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional
from app.models.enrollment_model import EnrollmentDecision, EnrollmentStatus
from app.schemas.subscription_schema import SubscriptionRead


class EnrollmentCreate(BaseModel):
    student_id: int = Field(..., example=1)
    class_id: int = Field(..., example=1)


class EnrollmentDecisionRequest(BaseModel):
    """Quyết định của admin; APPROVE sẽ cấp subscription trong cùng giao dịch."""
    decision: EnrollmentDecision = Field(..., example="APPROVE", description="APPROVE hoặc REJECT")
    notes: Optional[str] = Field(None, max_length=500)
    period_length_days: Optional[int] = Field(None, example=30)
    class_limit: Optional[int] = Field(None, example=8)
    expected_version: Optional[int] = None


class EnrollmentCancelRequest(BaseModel):
    expected_version: Optional[int] = None


class EnrollmentRead(BaseModel):
    enrollment_id: int = Field(..., example=1001)
    student_id: int
    class_id: int
    status: EnrollmentStatus = Field(..., example="PENDING", description="PENDING, APPROVED, REJECTED, CANCELLED")
    created_at: datetime
    decided_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    version: int

    model_config = ConfigDict(from_attributes=True)


class EnrollmentDecisionResult(BaseModel):
    """Kết quả quyết định; subscription chỉ có khi APPROVE."""
    enrollment: EnrollmentRead
    subscription: Optional[SubscriptionRead] = None
