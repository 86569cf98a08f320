"""Coupon validation and discount calculation."""
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_, update
from sqlmodel import Session, select

from playoga.core.clock import as_utc, utcnow
from playoga.models import Coupon
from playoga.services.pricing import ZERO, round_rupee

log = logging.getLogger("playoga.coupon")

MSG_REQUIRED = "Coupon code is required"
MSG_INVALID = "Invalid coupon code"
MSG_EXPIRED = "Coupon has expired"
MSG_LIMIT = "Coupon usage limit reached"


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def compute_discount(coupon: Coupon, base_amount: Decimal) -> Decimal:
    """Percentage is rounded to whole rupees (half up), then capped by max_discount."""
    if coupon.discount_type == "percentage":
        discount = round_rupee(Decimal(base_amount) * Decimal(coupon.discount_value) / 100)
    else:
        discount = Decimal(coupon.discount_value)
    if coupon.max_discount is not None and discount > coupon.max_discount:
        discount = Decimal(coupon.max_discount)
    return discount


def validate_coupon(
    db: Session,
    code: str | None,
    base_amount: Decimal,
    now: datetime | None = None,
) -> tuple[Decimal, int | None, str | None]:
    """
    Validates a coupon and returns (discount_rupees, coupon_id, error_message).
    error_message is None when the coupon applies. Read only: the preview and
    the order endpoint call this with the same inputs and get the same answer.
    """
    code_upper = normalize_code(code)
    if not code_upper:
        return ZERO, None, MSG_REQUIRED
    stmt = select(Coupon).where(Coupon.code == code_upper, Coupon.is_active == True)  # noqa: E712
    coupon = db.exec(stmt).first()
    if not coupon:
        return ZERO, None, MSG_INVALID

    now = as_utc(now) if now else utcnow()
    valid_until = as_utc(coupon.valid_until)
    if now < as_utc(coupon.valid_from) or (valid_until is not None and now > valid_until):
        return ZERO, None, MSG_EXPIRED

    if coupon.max_uses is not None and coupon.times_used >= coupon.max_uses:
        return ZERO, None, MSG_LIMIT

    return compute_discount(coupon, base_amount), coupon.id, None


def increment_coupon_usage(db: Session, coupon_id: int) -> bool:
    """
    Atomic "increment if below max_uses" in a single UPDATE. Does not commit;
    the caller owns the transaction. False when the cap was already reached.
    """
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .where(or_(Coupon.max_uses.is_(None), Coupon.times_used < Coupon.max_uses))
        .values(times_used=Coupon.times_used + 1)
    )
    result = db.exec(stmt)
    if result.rowcount != 1:
        log.warning("Coupon usage not incremented: coupon_id=%s (missing or limit reached)", coupon_id)
        return False
    return True
