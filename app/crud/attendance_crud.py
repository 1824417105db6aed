# app/crud/attendance_crud.py
from typing import List, Optional, Tuple
from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from app.models.attendance_model import AttendanceRecord
from app.models.subscription_model import Subscription
from app.models.compensation_model import CompensationAssignment


def get_attendance_record(
    db: Session, subscription_id: int, class_session_id: int
) -> Optional[AttendanceRecord]:
    """Lấy bản ghi điểm danh của một subscription trong một buổi học cụ thể."""
    stmt = select(AttendanceRecord).where(
        AttendanceRecord.subscription_id == subscription_id,
        AttendanceRecord.class_session_id == class_session_id,
    )
    return db.execute(stmt).scalars().first()


def get_records_by_subscription_id(db: Session, subscription_id: int) -> List[AttendanceRecord]:
    stmt = (
        select(AttendanceRecord)
        .where(AttendanceRecord.subscription_id == subscription_id)
        .order_by(AttendanceRecord.attended_at, AttendanceRecord.attendance_id)
    )
    return list(db.execute(stmt).scalars().all())


def get_records_by_student_id(db: Session, student_id: int, skip: int = 0, limit: int = 100) -> List[AttendanceRecord]:
    stmt = (
        select(AttendanceRecord)
        .join(Subscription, AttendanceRecord.subscription_id == Subscription.subscription_id)
        .where(Subscription.student_id == student_id)
        .order_by(AttendanceRecord.attended_at, AttendanceRecord.attendance_id)
        .offset(skip)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def get_absences_without_compensation(db: Session, student_id: int) -> List[AttendanceRecord]:
    """
    Tìm các buổi vắng mặt của học sinh chưa được xếp lớp học bù.
    """
    stmt = (
        select(AttendanceRecord)
        .join(Subscription, AttendanceRecord.subscription_id == Subscription.subscription_id)
        .outerjoin(
            CompensationAssignment,
            CompensationAssignment.missed_attendance_id == AttendanceRecord.attendance_id,
        )
        .where(
            Subscription.student_id == student_id,
            AttendanceRecord.was_present.is_(False),
            CompensationAssignment.compensation_id.is_(None),
        )
        .order_by(AttendanceRecord.attended_at)
    )
    return list(db.execute(stmt).scalars().all())


def count_attendance(
    db: Session, subscription_id: Optional[int] = None, student_id: Optional[int] = None
) -> Tuple[int, int]:
    """Đếm (tổng số buổi, số buổi có mặt) theo subscription hoặc theo học sinh."""
    stmt = select(
        func.count(AttendanceRecord.attendance_id),
        func.sum(case((AttendanceRecord.was_present.is_(True), 1), else_=0)),
    ).join(Subscription, AttendanceRecord.subscription_id == Subscription.subscription_id)
    if subscription_id is not None:
        stmt = stmt.where(AttendanceRecord.subscription_id == subscription_id)
    if student_id is not None:
        stmt = stmt.where(Subscription.student_id == student_id)
    total, present = db.execute(stmt).one()
    return total or 0, present or 0
