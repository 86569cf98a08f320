from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ValidateCouponRequest(BaseModel):
    """Coupon preview. baseAmount is informational; the discount is priced on the plan's base price."""

    model_config = ConfigDict(populate_by_name=True)

    code: str | None = None
    base_amount: Decimal | None = Field(default=None, alias="baseAmount")


class CreateOrderRequest(BaseModel):
    """amount only identifies the plan; the server never prices from it."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal | None = None
    coupon_code: str | None = Field(default=None, alias="couponCode")


class VerifyPaymentRequest(BaseModel):
    """Razorpay checkout handler payload plus the client's view of the amounts (audit only)."""

    model_config = ConfigDict(populate_by_name=True)

    razorpay_order_id: str = Field(min_length=1, max_length=64)
    razorpay_payment_id: str = Field(min_length=1, max_length=64)
    razorpay_signature: str = Field(min_length=1, max_length=128)
    coupon_id: int | None = Field(default=None, alias="couponId")
    base_amount: Decimal | None = Field(default=None, alias="baseAmount")
    gst_amount: Decimal | None = Field(default=None, alias="gstAmount")
    discount_amount: Decimal | None = Field(default=None, alias="discountAmount")
    total_amount: Decimal | None = Field(default=None, alias="totalAmount")

    @field_validator("razorpay_order_id", "razorpay_payment_id", "razorpay_signature", mode="before")
    @classmethod
    def strip_ids(cls, v):
        return v.strip() if isinstance(v, str) else v
