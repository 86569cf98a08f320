"""User profile kept by the mobile app; only read here for the checkout prefill."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from playoga.core.clock import utcnow


class Profile(SQLModel, table=True):
    __tablename__ = "profiles"
    id: str = Field(primary_key=True, max_length=64)  # identity provider user id (sub)
    full_name: str | None = None
    avatar_url: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
