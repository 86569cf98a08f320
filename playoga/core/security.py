from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from .config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60  # identity provider default


def create_access_token(sub: str, email: str | None = None, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    """Issues a provider-compatible token. Used by local tooling and tests; production tokens come from the provider."""
    to_encode: dict = {"sub": sub, "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)}
    if email:
        to_encode["email"] = email
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience or None,
            options={"verify_aud": bool(settings.jwt_audience)},
        )
    except JWTError:
        return None
