"""Subscription checkout: coupon preview, Razorpay order creation, payment verification."""
import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from playoga.api.deps import CurrentUser, get_current_user, get_gateway
from playoga.core.config import settings
from playoga.core.database import get_db
from playoga.core.rate_limit import client_ip, limiter, per_minute
from playoga.models import Profile, SecurityLog
from playoga.schemas import CreateOrderRequest, ValidateCouponRequest, VerifyPaymentRequest
from playoga.services.checkout import build_notes, parse_notes, quote, receipt_for
from playoga.services.coupon import validate_coupon
from playoga.services.razorpay import GatewayError, RazorpayClient, verify_signature
from playoga.services.subscription import PaymentOwnershipError, activate_subscription

log = logging.getLogger("playoga.checkout")

router = APIRouter(tags=["checkout"])
_COUPON_LIMIT = per_minute("rate_limit_coupon_per_minute")
_CHECKOUT_LIMIT = per_minute("rate_limit_per_minute")

VERIFICATION_FAILED = "Payment verification failed"


def _num(value: Decimal) -> int | float:
    """JSON number: 100 stays 100, 44.95 stays 44.95."""
    value = Decimal(value)
    return int(value) if value == value.to_integral_value() else float(value)


def _security_log(db: Session, event: str, user_id: str | None, request: Request, detail: str | None) -> None:
    try:
        db.add(SecurityLog(event=event, user_id=user_id, ip=client_ip(request), endpoint=request.url.path, detail=detail))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("SecurityLog %s write failed: %s", event, e)


def _display_name(db: Session, user_id: str) -> str:
    """Checkout prefill; a missing profile is not an error."""
    try:
        profile = db.get(Profile, user_id)
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("Profile lookup failed: user_id=%s %s", user_id, e)
        return ""
    return (profile.full_name or "") if profile else ""


@router.post("/validate-coupon")
@limiter.limit(_COUPON_LIMIT)
def validate_coupon_preview(
    request: Request,
    body: ValidateCouponRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Always 200; an unusable coupon is a normal answer with discount 0."""
    discount, coupon_id, error = validate_coupon(db, body.code, settings.base_price)
    if error:
        return {"message": error, "discount": 0}
    return {
        "couponId": coupon_id,
        "discount": _num(discount),
        "message": f"Coupon applied! You save ₹{_num(discount)}",
    }


@router.post("/create-razorpay-order")
@limiter.limit(_CHECKOUT_LIMIT)
def create_razorpay_order(
    request: Request,
    body: CreateOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    gateway: RazorpayClient = Depends(get_gateway),
    db: Session = Depends(get_db),
):
    """Prices the plan server side and opens a Razorpay order. Nothing is stored locally."""
    if body.amount is not None and body.amount != settings.base_price:
        log.info("Client amount ignored: user_id=%s amount=%s base_price=%s", user.id, body.amount, settings.base_price)
    q = quote(db, body.coupon_code)
    b = q.breakdown
    amount = b.minor_units
    try:
        order = gateway.create_order(amount, settings.currency, receipt_for(user.id), build_notes(user.id, q))
    except GatewayError:
        raise HTTPException(status_code=500, detail="Failed to create payment order")
    order_id = order.get("id")
    if not order_id:
        log.error("Razorpay order response without id: user_id=%s response=%s", user.id, str(order)[:300])
        raise HTTPException(status_code=500, detail="Failed to create payment order")

    log.info("Order created: user_id=%s order_id=%s amount=%s coupon_id=%s", user.id, order_id, amount, q.coupon_id)
    return {
        "orderId": order_id,
        "amount": amount,
        "currency": settings.currency,
        "keyId": gateway.key_id,
        "prefill": {"name": _display_name(db, user.id), "email": user.email},
        "notes": {
            "couponId": q.coupon_id,
            "discount": _num(b.discount),
            "gstAmount": _num(b.gst),
            "baseAmount": _num(b.base),
        },
    }


@router.post("/verify-razorpay-payment")
@limiter.limit(_CHECKOUT_LIMIT)
def verify_razorpay_payment(
    request: Request,
    body: VerifyPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    gateway: RazorpayClient = Depends(get_gateway),
    db: Session = Depends(get_db),
):
    """
    Checks the checkout signature, then records the payment and activates the subscription.
    Nothing is written before the signature matches.
    """
    if not verify_signature(body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature, gateway.key_secret):
        log.warning("Signature mismatch: user_id=%s order_id=%s payment_id=%s", user.id, body.razorpay_order_id, body.razorpay_payment_id)
        _security_log(db, "payment_verification_failed", user.id, request, f"signature mismatch order={body.razorpay_order_id}")
        raise HTTPException(status_code=400, detail=VERIFICATION_FAILED)

    # Amounts and coupon come from the order we created, not from the callback body
    try:
        notes = parse_notes(gateway.fetch_order(body.razorpay_order_id))
    except GatewayError:
        raise HTTPException(status_code=500, detail="Could not load payment order")
    except ValueError as e:
        log.error("Malformed order notes: order_id=%s %s", body.razorpay_order_id, e)
        raise HTTPException(status_code=500, detail="Could not load payment order")

    if notes.user_id != user.id:
        log.warning("Order belongs to another user: user_id=%s order_id=%s owner=%s", user.id, body.razorpay_order_id, notes.user_id)
        _security_log(db, "payment_verification_failed", user.id, request, f"order owner mismatch order={body.razorpay_order_id}")
        raise HTTPException(status_code=400, detail=VERIFICATION_FAILED)

    if body.discount_amount is not None and body.discount_amount != notes.discount:
        log.warning("Client discount differs from order: order_id=%s client=%s order=%s", body.razorpay_order_id, body.discount_amount, notes.discount)
    if body.coupon_id is not None and body.coupon_id != notes.coupon_id:
        log.warning("Client coupon differs from order: order_id=%s client=%s order=%s", body.razorpay_order_id, body.coupon_id, notes.coupon_id)

    try:
        payment, _created = activate_subscription(
            db,
            user_id=user.id,
            order_id=body.razorpay_order_id,
            payment_id=body.razorpay_payment_id,
            signature=body.razorpay_signature,
            notes=notes,
        )
    except PaymentOwnershipError:
        _security_log(db, "payment_verification_failed", user.id, request, f"payment reuse payment={body.razorpay_payment_id}")
        raise HTTPException(status_code=400, detail=VERIFICATION_FAILED)

    return {"success": True, "invoiceNumber": payment.invoice_number}
