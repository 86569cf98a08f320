from datetime import datetime
from decimal import Decimal

from sqlmodel import Field, SQLModel

from playoga.core.clock import utcnow


class Payment(SQLModel, table=True):
    """Verified Razorpay payment. Written once after the signature check, never updated."""

    __tablename__ = "payments"
    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=64)
    razorpay_order_id: str = Field(index=True, max_length=64)
    razorpay_payment_id: str = Field(unique=True, index=True, max_length=64)
    razorpay_signature: str = Field(max_length=128)
    # Rupees; amount = base_amount - discount_amount + gst_amount
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    base_amount: Decimal = Field(max_digits=10, decimal_places=2)
    gst_amount: Decimal = Field(max_digits=10, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    currency: str = Field(default="INR", max_length=8)
    coupon_id: int | None = Field(default=None, foreign_key="coupons.id")
    status: str = Field(default="captured", max_length=16)
    invoice_number: str = Field(unique=True, index=True, max_length=64)  # PYG-YYYYMMDD-XXXX
    created_at: datetime = Field(default_factory=utcnow)
