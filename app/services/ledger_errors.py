"""Phân loại lỗi của ledger học viên.

Mỗi lỗi có `code` ổn định (tên lỗi) và `kind` dùng để quyết định
mã HTTP và việc có được retry hay không. Chỉ lỗi `infrastructure`
mới được LedgerFacade tự động thử lại.
"""

VALIDATION = "validation"
NOT_FOUND = "not_found"
STATE_CONFLICT = "state_conflict"
CAPACITY = "capacity"
CONSISTENCY = "consistency"
INFRASTRUCTURE = "infrastructure"


class LedgerError(Exception):
    """Base exception for ledger errors."""

    kind = VALIDATION

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    @property
    def code(self) -> str:
        return self.__class__.__name__


# --- validation ---
class InvalidAmount(LedgerError):
    """Raised when a money amount is missing, non-positive or inconsistent."""

    kind = VALIDATION


class InvalidLimit(LedgerError):
    """Raised when a class limit or period length is out of range."""

    kind = VALIDATION


class InvalidPayload(LedgerError):
    """Raised when a request body fails schema validation at the facade."""

    kind = VALIDATION

    def __init__(self, message: str = "", errors=None):
        super().__init__(message)
        self.errors = errors or []


# --- not found ---
class NotFound(LedgerError):
    kind = NOT_FOUND


class StudentNotFound(NotFound):
    pass


class EnrollmentNotFound(NotFound):
    pass


class SubscriptionNotFound(NotFound):
    pass


class AttendanceNotFound(NotFound):
    pass


class LedgerNotFound(NotFound):
    pass


class CompensationNotFound(NotFound):
    pass


class SessionNotFound(NotFound):
    pass


# --- state conflict ---
class InvalidTransition(LedgerError):
    kind = STATE_CONFLICT


class AlreadyProvisioned(LedgerError):
    kind = STATE_CONFLICT


class AlreadyCompensated(LedgerError):
    kind = STATE_CONFLICT


class DuplicateEnrollment(LedgerError):
    kind = STATE_CONFLICT


class DuplicateTransaction(LedgerError):
    kind = STATE_CONFLICT


class DuplicateAttendance(LedgerError):
    kind = STATE_CONFLICT


class NotAbsent(LedgerError):
    kind = STATE_CONFLICT


# --- capacity ---
class SubscriptionExhausted(LedgerError):
    kind = CAPACITY


class SubscriptionExpired(LedgerError):
    kind = CAPACITY


class SessionAtCapacity(LedgerError):
    kind = CAPACITY


# --- consistency ---
class OverpaymentRejected(LedgerError):
    kind = CONSISTENCY


class StaleVersion(LedgerError):
    kind = CONSISTENCY


# --- infrastructure ---
class StorageUnavailable(LedgerError):
    kind = INFRASTRUCTURE


HTTP_STATUS_BY_KIND = {
    VALIDATION: 422,
    NOT_FOUND: 404,
    STATE_CONFLICT: 409,
    CAPACITY: 409,
    CONSISTENCY: 409,
    INFRASTRUCTURE: 503,
}
