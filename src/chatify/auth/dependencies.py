"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user from the request.

Two places the token can come from:
1. Authorization: Bearer <token> (CLI, scripts)
2. The `jwt` cookie (browsers — set by signup/login)
"""

from typing import Optional

import structlog
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chatify.auth.identity import (
    IdentityNotFound,
    IdentityVerifier,
    InternalVerificationError,
    InvalidCredential,
    MissingCredential,
    UserIdentity,
)
from chatify.config import settings
from chatify.db.engine import async_session_factory, get_db

logger = structlog.get_logger()

_verifier = IdentityVerifier(async_session_factory)


def get_identity_verifier() -> IdentityVerifier:
    """FastAPI dependency — the process-wide verifier (override in tests)."""
    return _verifier


def token_from_request(request: Request) -> Optional[str]:
    """Pull the bearer credential from the Authorization header or auth cookie.

    An explicit header wins over the cookie.
    """
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[7:] or None
    return request.cookies.get(settings.auth_cookie_name) or None


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> UserIdentity:
    """Resolve the current user (required — 401 if no valid token).

    Learn: This is the "hard" auth dependency, applied at the
    include_router level for every protected router.
    """
    try:
        return await verifier.verify(token_from_request(request), db=db)
    except MissingCredential:
        raise HTTPException(
            status_code=401,
            detail="Unauthorized - No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except InvalidCredential as e:
        raise HTTPException(
            status_code=401,
            detail=f"Unauthorized - {e}",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except IdentityNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except InternalVerificationError as e:
        logger.error("auth.verification_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
