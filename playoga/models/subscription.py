from datetime import datetime

from sqlmodel import Field, SQLModel

from playoga.core.clock import utcnow


class Subscription(SQLModel, table=True):
    """One row per user; a renewal overwrites the row instead of appending. Timestamps are aware UTC."""

    __tablename__ = "subscriptions"
    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(unique=True, index=True, max_length=64)
    plan_type: str = Field(default="yearly", max_length=16)
    status: str = Field(default="active", max_length=16)  # active | expired | cancelled
    starts_at: datetime
    expires_at: datetime = Field(index=True)
    payment_id: int | None = Field(default=None, foreign_key="payments.id")
    razorpay_payment_id: str | None = Field(default=None, max_length=64)
    updated_at: datetime = Field(default_factory=utcnow)
