"""Connection gate — authenticate a WebSocket handshake before accept().

Learn: The browser can't set custom headers on a WebSocket upgrade, but it
does send cookies. So the token rides in the raw `Cookie` header of the
handshake, under the same name the REST layer used when it set it.

Every failure — no cookie, bad token, deleted user, or an unexpected
exception inside verification — becomes HandshakeRejected with the same
generic reason. The client can't tell which check failed; the server log
can. The gate fails closed: no code path returns without an identity.
"""

from typing import Optional

import structlog
from starlette.requests import HTTPConnection

from chatify.auth.identity import (
    AuthError,
    IdentityVerifier,
    MissingCredential,
    UserIdentity,
)
from chatify.config import settings

logger = structlog.get_logger()

REJECTED_CLOSE_CODE = 4001
REJECTED_REASON = "Unauthorized"


class HandshakeRejected(Exception):
    """The handshake must not be accepted. `reason` is safe to show the client."""

    def __init__(self, reason: str = REJECTED_REASON, cause: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


def extract_token(raw_cookie_header: Optional[str], name: str = "jwt") -> Optional[str]:
    """Pull one cookie value out of a raw `Cookie` header.

    "a=1; jwt=abc.def; theme=dark" → "abc.def". Returns None when the header
    or the field is missing, or the value is empty.
    """
    if not raw_cookie_header:
        return None
    prefix = f"{name}="
    for entry in raw_cookie_header.split("; "):
        entry = entry.strip()
        if entry.startswith(prefix):
            return entry[len(prefix):] or None
    return None


class ConnectionGate:
    """Turns a handshake into a UserIdentity, or rejects it."""

    def __init__(self, verifier: IdentityVerifier, cookie_name: Optional[str] = None):
        self.verifier = verifier
        self.cookie_name = cookie_name or settings.auth_cookie_name

    async def authenticate(self, connection: HTTPConnection) -> UserIdentity:
        """Authenticate from the handshake headers. Raises HandshakeRejected."""
        client = connection.client.host if connection.client else "unknown"
        token = extract_token(connection.headers.get("cookie"), self.cookie_name)

        try:
            if token is None:
                raise MissingCredential("No token provided")
            identity = await self.verifier.verify(token)
        except AuthError as e:
            logger.info(
                "gate.rejected", client=client, cause=type(e).__name__, error=str(e)
            )
            raise HandshakeRejected(cause=type(e).__name__) from e
        except Exception as e:
            logger.exception("gate.verification_error", client=client)
            raise HandshakeRejected(cause="InternalVerificationError") from e

        logger.info(
            "gate.authenticated",
            client=client,
            user_id=identity.id,
            full_name=identity.full_name,
        )
        return identity
