"""Security events: rate limit hits, forged payment callbacks."""
from datetime import datetime

from sqlmodel import Field, SQLModel

from playoga.core.clock import utcnow


class SecurityLog(SQLModel, table=True):
    __tablename__ = "security_logs"
    id: int | None = Field(default=None, primary_key=True)
    event: str = Field(index=True)  # rate_limit | payment_verification_failed
    user_id: str | None = Field(default=None, index=True)
    ip: str | None = None
    endpoint: str | None = None
    detail: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
