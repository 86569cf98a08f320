"""Checkout pricing: coupon re-validation, final amount and the order notes stored at Razorpay."""
import time
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

from sqlmodel import Session

from playoga.core.config import settings
from playoga.services.coupon import validate_coupon
from playoga.services.pricing import ZERO, PriceBreakdown, plan_price


class OrderQuote(NamedTuple):
    breakdown: PriceBreakdown
    coupon_id: int | None


class OrderNotes(NamedTuple):
    """Authoritative amounts read back from the gateway order at verification time."""

    user_id: str
    coupon_id: int | None
    base: Decimal
    discount: Decimal
    gst: Decimal


def quote(db: Session, coupon_code: str | None) -> OrderQuote:
    """An unusable coupon silently prices at zero discount; the client never supplies the discount."""
    discount, coupon_id = ZERO, None
    if coupon_code and coupon_code.strip():
        discount, coupon_id, _error = validate_coupon(db, coupon_code, settings.base_price)
    return OrderQuote(breakdown=plan_price(discount), coupon_id=coupon_id)


def receipt_for(user_id: str) -> str:
    # Razorpay receipt: max 40 chars
    return f"sub_{user_id[:8]}_{int(time.time() * 1000)}"


def build_notes(user_id: str, q: OrderQuote) -> dict:
    b = q.breakdown
    return {
        "userId": user_id,
        "couponId": str(q.coupon_id) if q.coupon_id is not None else "",
        "discount": str(b.discount),
        "gstAmount": str(b.gst),
        "baseAmount": str(b.base),
    }


def _decimal(value, default: Decimal = ZERO) -> Decimal:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal amount: {value!r}")


def parse_notes(order: dict) -> OrderNotes:
    """Reads the notes written by build_notes. ValueError on malformed notes."""
    notes = order.get("notes") or {}
    if not isinstance(notes, dict):
        raise ValueError("Order notes missing")
    raw_coupon = notes.get("couponId")
    coupon_id = int(raw_coupon) if raw_coupon not in (None, "") else None
    return OrderNotes(
        user_id=str(notes.get("userId") or ""),
        coupon_id=coupon_id,
        base=_decimal(notes.get("baseAmount"), settings.base_price),
        discount=_decimal(notes.get("discount")),
        gst=_decimal(notes.get("gstAmount")),
    )
