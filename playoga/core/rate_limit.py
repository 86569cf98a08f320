"""Per-IP request limits for the checkout endpoints (SlowAPI)."""
from fastapi import Request
from slowapi import Limiter

from .config import settings


def client_ip(request: Request) -> str:
    """
    Address the limits are counted against. Behind the edge proxy the socket peer is the proxy
    itself, so the left-most X-Forwarded-For entry is used when TRUST_FORWARDED_FOR is on.
    """
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def per_minute(setting: str):
    """Limit string read from settings on every request, so a changed setting applies without re-import."""
    return lambda: f"{getattr(settings, setting)}/minute"


limiter = Limiter(key_func=client_ip)
