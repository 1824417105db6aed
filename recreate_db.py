from app.database import Base, engine
from app.models import (  # noqa: F401
    student_model, enrollment_model, subscription_model, attendance_model,
    fee_ledger_model, compensation_model, class_session_model,
)
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def recreate_database():
    logger.info("Đang xóa tất cả các bảng của ledger...")
    # drop_all đi theo thứ tự phụ thuộc ngược của khóa ngoại
    Base.metadata.drop_all(bind=engine)

    logger.info("Đang tạo lại tất cả các bảng...")
    Base.metadata.create_all(bind=engine)
    logger.info("Cơ sở dữ liệu đã được tạo lại thành công!")


if __name__ == "__main__":
    recreate_database()
