import sys
import os
from datetime import datetime, timedelta

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import *  # noqa: F401,F403
from app.services.ledger_facade import LedgerFacade


class FakeClock:
    """Đồng hồ điều khiển được để kiểm tra hết hạn kỳ và reset biên lai theo năm."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0))


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def ledger(db, clock, sleeps):
    return LedgerFacade(db, clock=clock, sleep=sleeps.append)


@pytest.fixture
def student(ledger):
    return ledger.register_student({"full_name": "Nguyen Van A", "email": "a@example.com"})


@pytest.fixture
def approved(ledger, student):
    """Học sinh đã được duyệt vào lớp 10 với kỳ 8 buổi / 30 ngày."""
    enrollment = ledger.request_enrollment({"student_id": student.student_id, "class_id": 10})
    return ledger.approve_enrollment_and_provision(enrollment.enrollment_id, class_limit=8, period_length_days=30)
