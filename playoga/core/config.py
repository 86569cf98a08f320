from decimal import Decimal
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: playoga/core/config.py -> playoga/core -> playoga -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    # JWT secret of the identity provider (Supabase "JWT secret"); tokens are HS256
    secret_key: str = "change-me-in-production"
    # Expected "aud" claim; empty string disables the audience check
    jwt_audience: str = "authenticated"
    database_url: str = "sqlite:///./playoga.db"
    # CORS: comma separated origins; "*" for the mobile webview
    cors_origins: str = "*"
    # Requests per minute per IP for order creation and payment verification
    rate_limit_per_minute: int = 60
    # Coupon preview is brute-forceable, keep it tighter
    rate_limit_coupon_per_minute: int = 20
    # Behind Render/Cloudflare the socket peer is the proxy; rate limit on X-Forwarded-For instead
    trust_forwarded_for: bool = True
    # Razorpay: order is created server side, checkout widget runs on the client
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    razorpay_timeout_seconds: int = 20
    # Pricing: single yearly plan, amounts in rupees
    base_price: Decimal = Decimal("999")
    gst_rate: Decimal = Decimal("0.05")
    currency: str = "INR"
    plan_type: str = "yearly"
    invoice_prefix: str = "PYG"
    environment: str = "development"  # development | production
    log_level: str = "INFO"
    sql_echo: bool = False

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("razorpay_key_id", "razorpay_key_secret", mode="before")
    @classmethod
    def strip_razorpay_keys(cls, v: str | None) -> str:
        """Trailing whitespace from copy/paste breaks Basic auth and HMAC."""
        return (v or "").strip()


settings = Settings()


def is_razorpay_configured() -> bool:
    return bool(settings.razorpay_key_id and settings.razorpay_key_secret)


def is_production() -> bool:
    return settings.environment.strip().lower() == "production"
