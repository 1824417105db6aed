from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Callable

from app.services.ledger_errors import InvalidAmount

Clock = Callable[[], datetime]

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Thời điểm hiện tại theo UTC, dạng naive để so sánh được với cột DateTime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_money(value) -> Decimal:
    """
    Chuẩn hóa số tiền về Decimal 2 chữ số thập phân.
    Không chấp nhận float gây sai số hoặc giá trị không phải số.
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(f"Số tiền không hợp lệ: {value!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"Số tiền không hợp lệ: {value!r}")
    quantized = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized != amount:
        # Không làm tròn thầm lặng: số tiền lẻ dưới 1 xu bị từ chối
        raise InvalidAmount(f"Số tiền chỉ được có tối đa 2 chữ số thập phân: {value!r}")
    return quantized


def format_receipt_number(year: int, seq: int) -> str:
    """RCP-{năm}-{số thứ tự 3 chữ số}, vd: RCP-2026-001."""
    return f"RCP-{year}-{seq:03d}"
