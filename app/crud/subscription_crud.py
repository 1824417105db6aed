# app/crud/subscription_crud.py
from datetime import datetime
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.models.subscription_model import Subscription, SubscriptionStatus


def get_latest_for_enrollment(db: Session, enrollment_id: int) -> Optional[Subscription]:
    """Lấy kỳ subscription mới nhất của một enrollment."""
    stmt = (
        select(Subscription)
        .where(Subscription.enrollment_id == enrollment_id)
        .order_by(Subscription.period_number.desc())
    )
    return db.execute(stmt).scalars().first()


def count_for_enrollment(db: Session, enrollment_id: int) -> int:
    stmt = select(func.count(Subscription.subscription_id)).where(Subscription.enrollment_id == enrollment_id)
    return db.execute(stmt).scalar() or 0


def get_subscriptions_by_student_id(db: Session, student_id: int) -> List[Subscription]:
    stmt = (
        select(Subscription)
        .where(Subscription.student_id == student_id)
        .order_by(Subscription.subscription_id)
    )
    return list(db.execute(stmt).scalars().all())


def get_active_subscriptions_by_student_id(db: Session, student_id: int, now: datetime) -> List[Subscription]:
    """Subscription còn ACTIVE và chưa quá period_end."""
    stmt = (
        select(Subscription)
        .where(
            Subscription.student_id == student_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.period_end >= now,
        )
        .order_by(Subscription.subscription_id)
    )
    return list(db.execute(stmt).scalars().all())


def get_lapsed_subscriptions(db: Session, now: datetime) -> List[Subscription]:
    """Subscription đã quá period_end nhưng chưa được đánh dấu EXPIRED."""
    stmt = select(Subscription).where(
        Subscription.status != SubscriptionStatus.EXPIRED,
        Subscription.period_end < now,
    )
    return list(db.execute(stmt).scalars().all())
