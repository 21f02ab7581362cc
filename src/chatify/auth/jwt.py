"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
The access token lives for a week and carries the user id in `sub`.
There is no refresh token — the client logs in again when it expires.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from chatify.config import settings


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token for a user."""
    if not settings.jwt_secret:
        raise TokenError("JWT secret is not configured")
    now = datetime.now(timezone.utc)
    expires = now + (
        expires_delta
        if expires_delta is not None
        else timedelta(days=settings.access_token_expire_days)
    )
    payload = {
        "sub": user_id,
        "type": "access",
        "exp": expires,
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT token.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")


def token_max_age_seconds() -> int:
    """Cookie max-age matching the token lifetime."""
    return settings.access_token_expire_days * 24 * 60 * 60
