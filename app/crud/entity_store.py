# app/crud/entity_store.py
import logging
from contextlib import contextmanager
from typing import Optional, Type, TypeVar

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.services.ledger_errors import LedgerError, NotFound, StaleVersion, StorageUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def translate_storage_error(exc: Exception) -> Optional[LedgerError]:
    """
    Chuyển lỗi SQLAlchemy sang lỗi ledger.
    Trả về None nếu lỗi không thuộc nhóm hạ tầng / xung đột version.
    """
    if isinstance(exc, StaleDataError):
        return StaleVersion("Bản ghi đã bị thay đổi bởi một giao dịch khác.")
    if isinstance(exc, IntegrityError):
        return None
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)):
        return StorageUnavailable(f"Storage không khả dụng: {exc.__class__.__name__}")
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StorageUnavailable("Mất kết nối tới storage.")
    return None


class EntityStore:
    """
    Lưu trữ bền vững theo khóa cho các thực thể của ledger.

    - `transaction()` lồng nhau được gộp thành một lần commit duy nhất,
      nên các thao tác tổng hợp của LedgerFacade là nguyên tử.
    - Mọi thực thể có cột `version` (version_id_col): ghi đè dựa trên
      bản đọc cũ sẽ bị từ chối bằng StaleVersion.
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self):
        if self._depth > 0:
            # Giao dịch con: để giao dịch ngoài cùng commit / rollback
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
            self.db.commit()
        except LedgerError:
            self._rollback()
            raise
        except Exception as exc:
            self._rollback()
            translated = translate_storage_error(exc)
            if translated is not None:
                raise translated from exc
            raise
        finally:
            self._depth = 0

    def _rollback(self):
        try:
            self.db.rollback()
        except SQLAlchemyError as exc:
            logger.warning(f"Rollback thất bại: {exc}")

    @contextmanager
    def guard(self):
        """Dịch lỗi storage cho các thao tác đọc / flush lẻ."""
        try:
            yield
        except LedgerError:
            raise
        except SQLAlchemyError as exc:
            translated = translate_storage_error(exc)
            if translated is not None:
                raise translated from exc
            raise

    # --- Đọc ---
    def get(self, model: Type[T], key) -> Optional[T]:
        with self.guard():
            return self.db.get(model, key)

    def require(self, model: Type[T], key, error_cls: Type[NotFound] = NotFound) -> T:
        obj = self.get(model, key)
        if obj is None:
            raise error_cls(f"Không tìm thấy {model.__name__} với khóa {key}.")
        return obj

    def get_for_update(
        self,
        model: Type[T],
        key,
        error_cls: Type[NotFound] = NotFound,
        expected_version: Optional[int] = None,
    ) -> T:
        """
        Đọc thực thể để sửa: khóa dòng (FOR UPDATE nếu backend hỗ trợ)
        và so khớp version mà client đã đọc trước đó.
        """
        with self.guard():
            obj = self.db.get(model, key, with_for_update=True)
        if obj is None:
            raise error_cls(f"Không tìm thấy {model.__name__} với khóa {key}.")
        if expected_version is not None and obj.version != expected_version:
            raise StaleVersion(
                f"{model.__name__} {key}: version hiện tại {obj.version}, client gửi {expected_version}."
            )
        return obj

    def scalars(self, stmt) -> list:
        with self.guard():
            return list(self.db.execute(stmt).scalars().all())

    def scalar_one_or_none(self, stmt):
        with self.guard():
            return self.db.execute(stmt).scalars().first()

    # --- Ghi ---
    def add(self, obj):
        self.db.add(obj)
        return obj

    def flush(self):
        """
        Flush xuống DB. IntegrityError được để nguyên cho service
        ánh xạ sang lỗi nghiệp vụ tương ứng (unique constraint).
        """
        with self.guard():
            self.db.flush()
