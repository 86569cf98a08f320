"""
Subscription activation after a verified Razorpay payment.

Payment insert, subscription upsert and coupon usage increment are one
transaction: either all three are committed or none is.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from playoga.core.clock import as_utc, utcnow
from playoga.core.config import settings
from playoga.models import Payment, Subscription
from playoga.services.checkout import OrderNotes
from playoga.services.coupon import increment_coupon_usage
from playoga.services.pricing import price

log = logging.getLogger("playoga.subscription")


class PaymentOwnershipError(Exception):
    """The payment is already recorded for a different user."""


def add_one_year(dt: datetime) -> datetime:
    try:
        return dt.replace(year=dt.year + 1)
    except ValueError:
        # Feb 29 -> Mar 1 of the next year
        return dt.replace(year=dt.year + 1, month=3, day=1)


def invoice_number(razorpay_payment_id: str, now: datetime) -> str:
    """PYG-YYYYMMDD-<payment token>; unique because Razorpay payment ids are."""
    token = razorpay_payment_id.removeprefix("pay_")
    return f"{settings.invoice_prefix}-{as_utc(now):%Y%m%d}-{token}"


def find_payment(db: Session, razorpay_payment_id: str) -> Payment | None:
    return db.exec(select(Payment).where(Payment.razorpay_payment_id == razorpay_payment_id)).first()


def _already_recorded(payment: Payment, user_id: str) -> Payment:
    if payment.user_id != user_id:
        raise PaymentOwnershipError(payment.razorpay_payment_id)
    log.info("Payment already recorded, no-op: payment_id=%s invoice=%s", payment.razorpay_payment_id, payment.invoice_number)
    return payment


def _subscription_row(db: Session, user_id: str, now: datetime) -> Subscription:
    """
    The user's subscription row, inserted if missing. The insert runs in a savepoint:
    when a concurrent first payment of the same user inserts the row first, the unique
    user_id rejects ours and the existing row is returned for update.
    """
    sub = get_subscription(db, user_id)
    if sub is not None:
        return sub
    try:
        with db.begin_nested():
            sub = Subscription(user_id=user_id, starts_at=now, expires_at=now)
            db.add(sub)
            db.flush()
        return sub
    except IntegrityError:
        sub = get_subscription(db, user_id)
        if sub is None:
            raise
        log.info("Subscription row created concurrently, updating it: user_id=%s", user_id)
        return sub


def activate_subscription(
    db: Session,
    *,
    user_id: str,
    order_id: str,
    payment_id: str,
    signature: str,
    notes: OrderNotes,
    now: datetime | None = None,
) -> tuple[Payment, bool]:
    """
    Records the payment and (re)activates the user's subscription.
    Only call after the signature has been verified.
    Returns (payment, created); created is False when the payment was already recorded.
    """
    existing = find_payment(db, payment_id)
    if existing:
        return _already_recorded(existing, user_id), False

    breakdown = price(notes.base, notes.discount)
    if breakdown.gst != notes.gst:
        log.warning("GST in order notes differs from recomputed value: order_id=%s notes=%s computed=%s", order_id, notes.gst, breakdown.gst)

    now = as_utc(now) if now else utcnow()
    payment = Payment(
        user_id=user_id,
        razorpay_order_id=order_id,
        razorpay_payment_id=payment_id,
        razorpay_signature=signature,
        amount=breakdown.total,
        base_amount=breakdown.base,
        gst_amount=breakdown.gst,
        discount_amount=breakdown.discount,
        currency=settings.currency,
        coupon_id=notes.coupon_id,
        status="captured",
        invoice_number=invoice_number(payment_id, now),
        created_at=now,
    )
    try:
        db.add(payment)
        db.flush()

        sub = _subscription_row(db, user_id, now)
        sub.plan_type = settings.plan_type
        sub.status = "active"
        sub.starts_at = now
        sub.expires_at = add_one_year(now)
        sub.payment_id = payment.id
        sub.razorpay_payment_id = payment_id
        sub.updated_at = now
        db.add(sub)

        if notes.coupon_id is not None:
            increment_coupon_usage(db, notes.coupon_id)

        db.commit()
    except IntegrityError:
        # Concurrent verification of the same payment won the insert
        db.rollback()
        existing = find_payment(db, payment_id)
        if existing is None:
            raise
        return _already_recorded(existing, user_id), False
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    log.info(
        "Subscription activated: user_id=%s payment_id=%s invoice=%s total=%s",
        user_id,
        payment_id,
        payment.invoice_number,
        payment.amount,
    )
    return payment, True


def get_subscription(db: Session, user_id: str) -> Subscription | None:
    return db.exec(select(Subscription).where(Subscription.user_id == user_id)).first()


def is_active(sub: Subscription | None, now: datetime | None = None) -> bool:
    if sub is None or sub.status != "active":
        return False
    return as_utc(sub.expires_at) > (as_utc(now) if now else utcnow())


def list_payments(db: Session, user_id: str, limit: int = 50) -> list[Payment]:
    stmt = select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit)
    return list(db.exec(stmt).all())
