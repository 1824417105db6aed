# app/api/v1/api.py
from fastapi import APIRouter

# --- Import các routers chức năng ---
from app.api.v1.endpoints.student_route import router as student_router
from app.api.v1.endpoints.enrollment_route import router as enrollment_router
from app.api.v1.endpoints.subscription_route import router as subscription_router
from app.api.v1.endpoints.attendance_route import router as attendance_router
from app.api.v1.endpoints.fee_route import router as fee_router
from app.api.v1.endpoints.compensation_route import router as compensation_router
from app.api.v1.endpoints.class_session_route import router as class_session_router

api_router = APIRouter()

# --- Bao gồm các routers vào router chính ---
api_router.include_router(student_router, prefix="/students", tags=["Students"])
api_router.include_router(enrollment_router, prefix="/enrollments", tags=["Enrollments"])
api_router.include_router(subscription_router, prefix="/subscriptions", tags=["Subscriptions"])
api_router.include_router(attendance_router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(fee_router, prefix="/fees", tags=["Fees"])
api_router.include_router(compensation_router, prefix="/compensations", tags=["Compensations"])
api_router.include_router(class_session_router, prefix="/class-sessions", tags=["Class Sessions"])
