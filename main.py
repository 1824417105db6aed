# main.py
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from apscheduler.schedulers.asyncio import AsyncIOScheduler # type: ignore
from apscheduler.triggers.cron import CronTrigger # type: ignore
from fastapi.middleware.cors import CORSMiddleware
from app.api.v1.api import api_router
from app.config import CORS_ORIGINS, ENABLE_EXPIRY_JOB
from app.database import Base, engine, SessionLocal
from app.models import *
from app.services.ledger_errors import HTTP_STATUS_BY_KIND, InvalidPayload, LedgerError, VALIDATION
from app.services.ledger_facade import LedgerFacade
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger('apscheduler').setLevel(logging.INFO)
logger = logging.getLogger(__name__)

# Tạo scheduler
scheduler = AsyncIOScheduler()


async def run_expire_subscriptions_task():
    """Tác vụ đánh dấu EXPIRED cho các subscription quá hạn, chạy mỗi đêm."""
    db = SessionLocal()
    try:
        expired = LedgerFacade(db).expire_lapsed_subscriptions()
        logger.info(f"Tác vụ hết hạn subscription đã chạy: {expired} bản ghi")
    except LedgerError as e:
        logger.error(f"Lỗi khi chạy tác vụ hết hạn subscription: {e.code}: {e.message}", exc_info=True)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tạo tất cả các bảng trong cơ sở dữ liệu
    Base.metadata.create_all(bind=engine)

    if ENABLE_EXPIRY_JOB:
        scheduler.add_job(
            run_expire_subscriptions_task,
            trigger=CronTrigger(hour=0, minute=5),
            id="expire_subscriptions_job",
            name="Expire Lapsed Subscriptions"
        )
        scheduler.start()
        logger.info("Scheduler đã được khởi động.")

    yield

    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler đã tắt.")


app = FastAPI(
    title="Art Academy Student Ledger API",
    description="Ghi danh, subscription theo kỳ, học phí và học bù của học viên.",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    content = {"detail": exc.message, "code": exc.code, "kind": exc.kind}
    if isinstance(exc, InvalidPayload) and exc.errors:
        content["errors"] = jsonable_encoder(exc.errors)
    return JSONResponse(status_code=HTTP_STATUS_BY_KIND.get(exc.kind, 500), content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_STATUS_BY_KIND[VALIDATION],
        content={
            "detail": "Dữ liệu yêu cầu không hợp lệ.",
            "code": InvalidPayload.__name__,
            "kind": VALIDATION,
            "errors": jsonable_encoder(exc.errors()),
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Bao gồm router chính của API v1
app.include_router(api_router, prefix="/api/v1")

@app.get("/")
def read_root():
    return {"message": "Welcome to the Art Academy Student Ledger API! Visit /docs for API documentation."}
