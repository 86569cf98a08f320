from fastapi import APIRouter, Depends
from sqlmodel import Session

from playoga.api.deps import CurrentUser, get_current_user
from playoga.core.database import get_db
from playoga.services.subscription import get_subscription, is_active, list_payments

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("")
def subscription_status(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Premium gate: active iff status is active and the window has not ended."""
    sub = get_subscription(db, user.id)
    if sub is None:
        return {"active": False, "planType": None, "status": None, "startsAt": None, "expiresAt": None}
    return {
        "active": is_active(sub),
        "planType": sub.plan_type,
        "status": sub.status,
        "startsAt": sub.starts_at.isoformat(),
        "expiresAt": sub.expires_at.isoformat(),
    }


@router.get("/payments")
def subscription_payments(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [
        {
            "invoiceNumber": p.invoice_number,
            "razorpayPaymentId": p.razorpay_payment_id,
            "amount": float(p.amount),
            "baseAmount": float(p.base_amount),
            "gstAmount": float(p.gst_amount),
            "discountAmount": float(p.discount_amount),
            "currency": p.currency,
            "status": p.status,
            "createdAt": p.created_at.isoformat(),
        }
        for p in list_payments(db, user.id)
    ]
