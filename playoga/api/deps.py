from typing import NamedTuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from playoga.core.config import is_razorpay_configured, settings
from playoga.core.security import decode_access_token
from playoga.services.razorpay import RazorpayClient

security = HTTPBearer(auto_error=False)


class CurrentUser(NamedTuple):
    id: str
    email: str


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    """Claims of the identity provider's token; no local user table."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(id=str(payload["sub"]), email=str(payload.get("email") or ""))


def get_gateway() -> RazorpayClient:
    if not is_razorpay_configured():
        raise HTTPException(status_code=500, detail="Payment gateway not configured")
    return RazorpayClient(settings.razorpay_key_id, settings.razorpay_key_secret)
