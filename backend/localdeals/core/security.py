"""JWT session tokens."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from localdeals.config import settings


def create_access_token(email: str, user_id: str | None = None) -> str:
    """Create a JWT session token for the given email.

    The email is the subject: sessions resolve to the application user by
    email, not by row id.
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": email.lower(),
        "exp": expire,
        "iat": now,
    }
    if user_id:
        payload["uid"] = str(user_id)
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Decode a JWT token and return the email it was issued for, or None if invalid."""
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload.get("sub")
    except JWTError:
        return None
