from .student_model import Student
from .enrollment_model import Enrollment
from .subscription_model import Subscription
from .attendance_model import AttendanceRecord
from .fee_ledger_model import FeeLedger, FeePayment
from .compensation_model import CompensationAssignment
from .class_session_model import ClassSession
