"""Discount coupon: percentage or fixed amount, validity window and usage cap."""
from datetime import datetime
from decimal import Decimal

from sqlmodel import Field, SQLModel

from playoga.core.clock import utcnow


class Coupon(SQLModel, table=True):
    """Created by the admin dashboard; times_used only moves on verified payments."""

    __tablename__ = "coupons"
    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # stored upper-case, e.g. YOGA10
    discount_type: str = Field(max_length=16)  # "percentage" | "fixed"
    discount_value: Decimal = Field(max_digits=10, decimal_places=2)  # percentage: 1-100, fixed: rupees
    max_discount: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)  # cap, rupees
    valid_from: datetime = Field(default_factory=utcnow)  # inclusive
    valid_until: datetime | None = Field(default=None)  # inclusive; null = open ended
    max_uses: int | None = Field(default=None)  # null = unlimited
    times_used: int = Field(default=0)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
