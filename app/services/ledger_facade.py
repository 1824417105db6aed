"""LedgerFacade: điểm vào duy nhất cho UI học sinh, UI admin và callback cổng thanh toán.

- Kiểm tra dữ liệu đầu vào bằng schema trước khi chạm tới service.
- Mỗi thao tác chạy trong đúng một giao dịch của EntityStore, nên các
  bất biến liên thực thể (vd: APPROVE + cấp subscription) là nguyên tử.
- Chỉ lỗi StorageUnavailable được thử lại, có giới hạn và backoff.
"""
import logging
import time
import uuid
from typing import Callable, List, Optional, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.config import (
    DEFAULT_CLASS_LIMIT,
    DEFAULT_PERIOD_DAYS,
    LEDGER_RETRY_BACKOFF_SECONDS,
    LEDGER_STORAGE_RETRIES,
)
from app.crud import student_crud
from app.crud.entity_store import EntityStore
from app.models.class_session_model import ClassSession
from app.models.compensation_model import CompensationStatus
from app.models.enrollment_model import EnrollmentDecision, EnrollmentStatus
from app.models.fee_ledger_model import PaymentMethod
from app.models.student_model import Student
from app.models.subscription_model import Subscription
from app.schemas.attendance_schema import AttendanceCreate, AttendanceRead, AttendanceSummaryRead
from app.schemas.class_session_schema import ClassSessionCreate, ClassSessionRead
from app.schemas.compensation_schema import (
    CompensationCancel,
    CompensationComplete,
    CompensationCreate,
    CompensationRead,
)
from app.schemas.enrollment_schema import (
    EnrollmentCancelRequest,
    EnrollmentCreate,
    EnrollmentDecisionRequest,
    EnrollmentDecisionResult,
    EnrollmentRead,
)
from app.schemas.fee_ledger_schema import (
    FeeLedgerCreate,
    FeeLedgerRead,
    FeeOverviewRead,
    FeeStatusRead,
    GatewayPaymentCallback,
    PaymentCreate,
    PaymentRead,
)
from app.schemas.student_schema import StudentContactUpdate, StudentCreate, StudentRead
from app.schemas.subscription_schema import SubscriptionRead, SubscriptionRenew
from app.services.compensation_service import CompensationScheduler
from app.services.enrollment_service import EnrollmentManager
from app.services.fee_ledger_service import FeeLedgerService
from app.services.ledger_errors import InvalidPayload, StorageUnavailable, StudentNotFound
from app.services.service_helper import Clock, utcnow
from app.services.session_capacity import SessionCapacity
from app.services.subscription_service import SubscriptionTracker, effective_status, validate_limits

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)
R = TypeVar("R")


class LedgerFacade:
    def __init__(
        self,
        db: Session,
        capacity: Optional[SessionCapacity] = None,
        clock: Clock = utcnow,
        max_retries: int = LEDGER_STORAGE_RETRIES,
        backoff_seconds: float = LEDGER_RETRY_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = EntityStore(db)
        self.clock = clock
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

        self.enrollments = EnrollmentManager(self.store, clock)
        self.subscriptions = SubscriptionTracker(self.store, clock)
        self.fees = FeeLedgerService(self.store, clock)
        self.compensations = CompensationScheduler(self.store, self.subscriptions, capacity, clock)

    # ----------------- Hạ tầng -----------------
    @staticmethod
    def _parse(schema: type, payload) -> S:
        """Kiểm tra payload dạng JSON tại biên facade."""
        if isinstance(payload, schema):
            return payload
        try:
            return schema.model_validate(payload)
        except ValidationError as e:
            raise InvalidPayload(
                f"Dữ liệu {schema.__name__} không hợp lệ.",
                errors=e.errors(include_url=False, include_context=False, include_input=False),
            ) from e

    def _run(self, operation: str, fn: Callable[[], R]) -> R:
        """
        Chạy fn trong một giao dịch. Lỗi hạ tầng được thử lại tối đa
        max_retries lần với backoff lũy thừa; hết lượt thì ném nguyên lỗi.
        """
        attempt = 0
        while True:
            try:
                with self.store.transaction():
                    return fn()
            except StorageUnavailable as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"{operation}: storage không khả dụng sau {attempt} lần thử: {e}")
                    raise
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(f"{operation}: {e}; thử lại lần {attempt} sau {delay:.2f}s")
                self.sleep(delay)

    def _subscription_read(self, subscription: Subscription) -> SubscriptionRead:
        read = SubscriptionRead.model_validate(subscription)
        return read.model_copy(update={"status": effective_status(subscription, self.clock())})

    # ----------------- Học sinh -----------------
    def register_student(self, payload) -> StudentRead:
        data = self._parse(StudentCreate, payload)

        def op():
            student = self.store.add(Student(full_name=data.full_name, email=data.email, phone=data.phone))
            self.store.flush()
            return StudentRead.model_validate(student)

        return self._run("register_student", op)

    def update_student_contact(self, student_id: int, payload) -> StudentRead:
        data = self._parse(StudentContactUpdate, payload)

        def op():
            student = self.store.get_for_update(Student, student_id, StudentNotFound, data.expected_version)
            changes = data.model_dump(exclude_unset=True, exclude={"expected_version"})
            for key, value in changes.items():
                setattr(student, key, value)
            self.store.flush()
            return StudentRead.model_validate(student)

        return self._run("update_student_contact", op)

    def get_student(self, student_id: int) -> StudentRead:
        return self._run(
            "get_student",
            lambda: StudentRead.model_validate(self.store.require(Student, student_id, StudentNotFound)),
        )

    def list_students(self, skip: int = 0, limit: int = 100) -> List[StudentRead]:
        def op():
            with self.store.guard():
                students = student_crud.get_all_students(self.store.db, skip, limit)
            return [StudentRead.model_validate(s) for s in students]

        return self._run("list_students", op)

    # ----------------- Enrollment -----------------
    def request_enrollment(self, payload) -> EnrollmentRead:
        data = self._parse(EnrollmentCreate, payload)
        return self._run(
            "request_enrollment",
            lambda: EnrollmentRead.model_validate(
                self.enrollments.request_enrollment(data.student_id, data.class_id)
            ),
        )

    def approve_enrollment_and_provision(
        self,
        enrollment_id: int,
        notes: Optional[str] = None,
        period_length_days: Optional[int] = None,
        class_limit: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> EnrollmentDecisionResult:
        """
        APPROVE và cấp subscription trong cùng một giao dịch: nếu cấp
        subscription thất bại, enrollment vẫn ở PENDING.
        """
        period_length_days = DEFAULT_PERIOD_DAYS if period_length_days is None else period_length_days
        class_limit = DEFAULT_CLASS_LIMIT if class_limit is None else class_limit
        validate_limits(period_length_days, class_limit)

        def op():
            enrollment = self.enrollments.decide(
                enrollment_id, EnrollmentDecision.APPROVE, notes, expected_version
            )
            subscription = self.subscriptions.provision(enrollment_id, period_length_days, class_limit)
            return EnrollmentDecisionResult(
                enrollment=EnrollmentRead.model_validate(enrollment),
                subscription=self._subscription_read(subscription),
            )

        return self._run("approve_enrollment_and_provision", op)

    def decide_enrollment(self, enrollment_id: int, payload) -> EnrollmentDecisionResult:
        data = self._parse(EnrollmentDecisionRequest, payload)
        if data.decision == EnrollmentDecision.APPROVE:
            return self.approve_enrollment_and_provision(
                enrollment_id,
                notes=data.notes,
                period_length_days=data.period_length_days,
                class_limit=data.class_limit,
                expected_version=data.expected_version,
            )

        def op():
            enrollment = self.enrollments.decide(
                enrollment_id, EnrollmentDecision.REJECT, data.notes, data.expected_version
            )
            return EnrollmentDecisionResult(enrollment=EnrollmentRead.model_validate(enrollment))

        return self._run("decide_enrollment", op)

    def cancel_enrollment(self, enrollment_id: int, payload=None) -> EnrollmentRead:
        data = self._parse(EnrollmentCancelRequest, payload or {})
        return self._run(
            "cancel_enrollment",
            lambda: EnrollmentRead.model_validate(self.enrollments.cancel(enrollment_id, data.expected_version)),
        )

    def get_enrollment(self, enrollment_id: int) -> EnrollmentRead:
        return self._run(
            "get_enrollment", lambda: EnrollmentRead.model_validate(self.enrollments.get(enrollment_id))
        )

    def list_enrollments(
        self, status: Optional[EnrollmentStatus] = None, skip: int = 0, limit: int = 100
    ) -> List[EnrollmentRead]:
        return self._run(
            "list_enrollments",
            lambda: [EnrollmentRead.model_validate(e) for e in self.enrollments.list_by_status(status, skip, limit)],
        )

    def enrollments_for_student(self, student_id: int) -> List[EnrollmentRead]:
        return self._run(
            "enrollments_for_student",
            lambda: [EnrollmentRead.model_validate(e) for e in self.enrollments.list_for_student(student_id)],
        )

    # ----------------- Subscription & điểm danh -----------------
    def renew_subscription(self, enrollment_id: int, payload=None) -> SubscriptionRead:
        data = self._parse(SubscriptionRenew, payload or {})
        return self._run(
            "renew_subscription",
            lambda: self._subscription_read(
                self.subscriptions.renew(enrollment_id, data.period_length_days, data.class_limit)
            ),
        )

    def record_attendance(self, payload) -> AttendanceRead:
        data = self._parse(AttendanceCreate, payload)
        return self._run(
            "record_attendance",
            lambda: AttendanceRead.model_validate(
                self.subscriptions.record_attendance(
                    data.subscription_id,
                    data.class_session_id,
                    data.was_present,
                    expected_version=data.expected_version,
                )
            ),
        )

    def get_subscription(self, subscription_id: int) -> SubscriptionRead:
        return self._run(
            "get_subscription", lambda: self._subscription_read(self.subscriptions.get(subscription_id))
        )

    def subscriptions_for_student(self, student_id: int, active_only: bool = False) -> List[SubscriptionRead]:
        def op():
            if active_only:
                items = self.subscriptions.active_for_student(student_id)
            else:
                items = self.subscriptions.list_for_student(student_id)
            return [self._subscription_read(s) for s in items]

        return self._run("subscriptions_for_student", op)

    def attendance_for_subscription(self, subscription_id: int) -> List[AttendanceRead]:
        return self._run(
            "attendance_for_subscription",
            lambda: [
                AttendanceRead.model_validate(r)
                for r in self.subscriptions.attendance_for_subscription(subscription_id)
            ],
        )

    def attendance_for_student(self, student_id: int, skip: int = 0, limit: int = 100) -> List[AttendanceRead]:
        return self._run(
            "attendance_for_student",
            lambda: [
                AttendanceRead.model_validate(r)
                for r in self.subscriptions.attendance_for_student(student_id, skip, limit)
            ],
        )

    def attendance_summary_for_subscription(self, subscription_id: int) -> AttendanceSummaryRead:
        return self._run(
            "attendance_summary_for_subscription",
            lambda: AttendanceSummaryRead(**self.subscriptions.attendance_summary(subscription_id=subscription_id)),
        )

    def attendance_summary_for_student(self, student_id: int) -> AttendanceSummaryRead:
        def op():
            self.store.require(Student, student_id, StudentNotFound)
            return AttendanceSummaryRead(**self.subscriptions.attendance_summary(student_id=student_id))

        return self._run("attendance_summary_for_student", op)

    def expire_lapsed_subscriptions(self) -> int:
        return self._run("expire_lapsed_subscriptions", self.subscriptions.expire_lapsed)

    # ----------------- Học phí -----------------
    def open_fee_ledger(self, payload) -> FeeLedgerRead:
        data = self._parse(FeeLedgerCreate, payload)
        return self._run(
            "open_fee_ledger",
            lambda: FeeLedgerRead.model_validate(
                self.fees.open_ledger(data.student_id, data.total_fee, data.due_date)
            ),
        )

    def record_payment(self, student_id: int, payload) -> PaymentRead:
        data = self._parse(PaymentCreate, payload)
        transaction_id = data.transaction_id
        if not transaction_id:
            if data.method != PaymentMethod.CASH:
                raise InvalidPayload(f"Thanh toán {data.method.value} bắt buộc có transaction_id.")
            # Tiền mặt do admin ghi nhận không có mã giao dịch bên ngoài
            transaction_id = f"CASH-{uuid.uuid4().hex[:16]}"

        return self._run(
            "record_payment",
            lambda: PaymentRead.model_validate(
                self.fees.record_payment(
                    student_id,
                    data.amount,
                    data.method,
                    transaction_id,
                    notes=data.notes,
                    expected_version=data.expected_version,
                )
            ),
        )

    def record_failed_payment(self, student_id: int, payload) -> PaymentRead:
        data = self._parse(PaymentCreate, payload)
        if not data.transaction_id:
            raise InvalidPayload("Giao dịch thất bại phải có transaction_id.")
        return self._run(
            "record_failed_payment",
            lambda: PaymentRead.model_validate(
                self.fees.record_failed_payment(
                    student_id, data.amount, data.method, data.transaction_id, notes=data.notes
                )
            ),
        )

    def record_gateway_payment(self, payload) -> PaymentRead:
        """
        Callback đã được xác thực chữ ký ở adapter cổng thanh toán.
        payment_id của cổng được dùng làm idempotency key.
        """
        data = self._parse(GatewayPaymentCallback, payload)
        notes = f"order {data.order_id}"

        def op():
            if data.succeeded:
                payment = self.fees.record_payment(
                    data.student_id, data.amount, PaymentMethod.ONLINE, data.payment_id, notes=notes
                )
            else:
                payment = self.fees.record_failed_payment(
                    data.student_id, data.amount, PaymentMethod.ONLINE, data.payment_id, notes=notes
                )
            return PaymentRead.model_validate(payment)

        return self._run("record_gateway_payment", op)

    def get_fee_status(self, student_id: int) -> FeeStatusRead:
        return self._run("get_fee_status", lambda: FeeStatusRead(**self.fees.get_status(student_id)))

    def list_fee_ledgers(self, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[FeeStatusRead]:
        return self._run(
            "list_fee_ledgers",
            lambda: [FeeStatusRead(**item) for item in self.fees.list_ledgers(status, skip, limit)],
        )

    def get_fee_overview(self) -> FeeOverviewRead:
        return self._run("get_fee_overview", lambda: FeeOverviewRead(**self.fees.overview()))

    def list_payments(self, student_id: int, skip: int = 0, limit: int = 100) -> List[PaymentRead]:
        return self._run(
            "list_payments",
            lambda: [PaymentRead.model_validate(p) for p in self.fees.list_payments(student_id, skip, limit)],
        )

    # ----------------- Học bù -----------------
    def register_class_session(self, payload) -> ClassSessionRead:
        """Hệ thống lịch học bên ngoài đăng ký / cập nhật sức chứa buổi học."""
        data = self._parse(ClassSessionCreate, payload)

        def op():
            session = self.store.get(ClassSession, data.session_id)
            if session is None:
                session = self.store.add(ClassSession(**data.model_dump()))
            else:
                session.class_id = data.class_id
                session.starts_at = data.starts_at
                session.capacity = data.capacity
            self.store.flush()
            return ClassSessionRead.model_validate(session)

        return self._run("register_class_session", op)

    def assign_compensation(self, payload) -> CompensationRead:
        data = self._parse(CompensationCreate, payload)
        return self._run(
            "assign_compensation",
            lambda: CompensationRead.model_validate(
                self.compensations.assign_compensation(
                    data.missed_attendance_id, data.candidate_session_id, data.reason, data.assigned_by
                )
            ),
        )

    def complete_compensation(self, assignment_id: int, payload=None) -> CompensationRead:
        data = self._parse(CompensationComplete, payload or {})
        return self._run(
            "complete_compensation",
            lambda: CompensationRead.model_validate(
                self.compensations.complete_compensation(assignment_id, data.expected_version)
            ),
        )

    def cancel_compensation(self, assignment_id: int, payload=None) -> CompensationRead:
        data = self._parse(CompensationCancel, payload or {})
        return self._run(
            "cancel_compensation",
            lambda: CompensationRead.model_validate(
                self.compensations.cancel_compensation(assignment_id, data.reason, data.expected_version)
            ),
        )

    def list_compensations(
        self, student_id: Optional[int] = None, status: Optional[CompensationStatus] = None
    ) -> List[CompensationRead]:
        return self._run(
            "list_compensations",
            lambda: [
                CompensationRead.model_validate(c)
                for c in self.compensations.list_assignments(student_id, status)
            ],
        )

    def absences_eligible_for_compensation(self, student_id: int) -> List[AttendanceRead]:
        return self._run(
            "absences_eligible_for_compensation",
            lambda: [
                AttendanceRead.model_validate(r)
                for r in self.subscriptions.absences_without_compensation(student_id)
            ],
        )
