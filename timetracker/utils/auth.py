"""Password hashing and JWT helpers for the time tracking API."""
from datetime import timedelta
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from timetracker.config import settings
from timetracker.utils.clock import utcnow


def hash_password(password: str) -> str:
    """
    Hash a password with a fresh bcrypt salt.

    Example:
        >>> hash_password("timesheet-42").startswith("$2b$")
        True
    """
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )


def create_access_token(
    user_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Issue a signed access token whose subject is ``user_id``.

    Args:
        user_id: User the token authenticates
        expires_delta: Lifetime override; defaults to the configured expiry

    Returns:
        Encoded JWT
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_expiration_minutes)
    claims = {
        "sub": user_id,
        "exp": utcnow() + lifetime,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> str:
    """
    Decode an access token and return its user ID.

    Raises:
        JWTError: If the token is invalid, expired or has no subject
    """
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    user_id = payload.get("sub")
    if user_id is None:
        raise JWTError("Token payload missing 'sub' claim")
    return user_id
