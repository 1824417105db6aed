# app/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.config import DATABASE_URL, STORAGE_TIMEOUT_SECONDS


class Base(DeclarativeBase):
    """
    Lớp cơ sở khai báo cho các mô hình SQLAlchemy 2.0.
    Tất cả các mô hình khác sẽ kế thừa từ lớp này.
    """
    pass


def build_engine(url: str = DATABASE_URL, timeout: float = STORAGE_TIMEOUT_SECONDS):
    """Tạo engine có giới hạn thời gian chờ để storage không bao giờ treo vô hạn."""
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout}
    else:
        connect_args = {
            "connect_timeout": max(1, int(timeout)),
            "options": f"-c statement_timeout={int(timeout * 1000)} -c lock_timeout={int(timeout * 1000)}",
        }
        return create_engine(
            url,
            connect_args=connect_args,
            pool_timeout=timeout,
            pool_pre_ping=True,
        )
    return create_engine(url, connect_args=connect_args)


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency để lấy phiên cơ sở dữ liệu."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
