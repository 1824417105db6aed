"""Hook đọc sức chứa buổi học từ hệ thống lịch học bên ngoài.

Ledger chỉ hỏi "buổi này còn chỗ không", không sở hữu lịch học.
"""
from typing import Dict, Protocol

from app.crud import compensation_crud, enrollment_crud
from app.crud.entity_store import EntityStore
from app.models.class_session_model import ClassSession
from app.services.ledger_errors import SessionNotFound


class SessionCapacity(Protocol):
    def has_capacity(self, store: EntityStore, session_id: int) -> bool:
        ...


class DbSessionCapacity:
    """
    Đọc bảng class_sessions: số học sinh APPROVED của lớp cộng số
    học sinh đang được xếp học bù vào buổi phải nhỏ hơn capacity.
    """

    def has_capacity(self, store: EntityStore, session_id: int) -> bool:
        # Khóa dòng buổi học để hai lần xếp học bù đồng thời không cùng lọt qua
        session = store.get_for_update(ClassSession, session_id, SessionNotFound)
        with store.guard():
            regular = enrollment_crud.count_approved_in_class(store.db, session.class_id)
            makeups = compensation_crud.count_assigned_to_session(store.db, session_id)
        return regular + makeups < session.capacity


class StaticSessionCapacity:
    """Sức chứa học bù cố định theo session_id; buổi không có trong bảng coi như còn chỗ."""

    def __init__(self, capacities: Dict[int, int]):
        self.capacities = dict(capacities)

    def has_capacity(self, store: EntityStore, session_id: int) -> bool:
        with store.guard():
            taken = compensation_crud.count_assigned_to_session(store.db, session_id)
        return taken < self.capacities.get(session_id, taken + 1)
