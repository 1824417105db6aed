# app/crud/enrollment_crud.py
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.enrollment_model import Enrollment, EnrollmentStatus, ACTIVE_ENROLLMENT_STATUSES


def get_active_enrollment(db: Session, student_id: int, class_id: int) -> Optional[Enrollment]:
    """Lấy enrollment đang hoạt động (PENDING hoặc APPROVED) của một học sinh trong một lớp."""
    stmt = select(Enrollment).where(
        Enrollment.student_id == student_id,
        Enrollment.class_id == class_id,
        Enrollment.status.in_(ACTIVE_ENROLLMENT_STATUSES),
    )
    return db.execute(stmt).scalars().first()


def get_enrollments_by_student_id(
    db: Session, student_id: int, skip: int = 0, limit: int = 100
) -> List[Enrollment]:
    stmt = (
        select(Enrollment)
        .where(Enrollment.student_id == student_id)
        .order_by(Enrollment.enrollment_id)
        .offset(skip)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def get_enrollments(
    db: Session, status: Optional[EnrollmentStatus] = None, skip: int = 0, limit: int = 100
) -> List[Enrollment]:
    """Lấy danh sách enrollments, có thể lọc theo trạng thái."""
    stmt = select(Enrollment)
    if status is not None:
        stmt = stmt.where(Enrollment.status == status)
    stmt = stmt.order_by(Enrollment.enrollment_id).offset(skip).limit(limit)
    return list(db.execute(stmt).scalars().all())


def count_approved_in_class(db: Session, class_id: int) -> int:
    stmt = select(Enrollment.enrollment_id).where(
        Enrollment.class_id == class_id,
        Enrollment.status == EnrollmentStatus.APPROVED,
    )
    return len(db.execute(stmt).all())
