# app/crud/compensation_crud.py
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.models.compensation_model import CompensationAssignment, CompensationStatus


def get_by_missed_attendance_id(db: Session, missed_attendance_id: int) -> Optional[CompensationAssignment]:
    stmt = select(CompensationAssignment).where(
        CompensationAssignment.missed_attendance_id == missed_attendance_id
    )
    return db.execute(stmt).scalars().first()


def get_assignments(
    db: Session,
    student_id: Optional[int] = None,
    status: Optional[CompensationStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[CompensationAssignment]:
    stmt = select(CompensationAssignment)
    if student_id is not None:
        stmt = stmt.where(CompensationAssignment.student_id == student_id)
    if status is not None:
        stmt = stmt.where(CompensationAssignment.status == status)
    stmt = stmt.order_by(CompensationAssignment.assigned_at.desc()).offset(skip).limit(limit)
    return list(db.execute(stmt).scalars().all())


def count_assigned_to_session(db: Session, session_id: int) -> int:
    """Số học sinh đang được xếp học bù vào một buổi học."""
    stmt = select(func.count(CompensationAssignment.compensation_id)).where(
        CompensationAssignment.assigned_session_id == session_id,
        CompensationAssignment.status == CompensationStatus.ASSIGNED,
    )
    return db.execute(stmt).scalar() or 0
