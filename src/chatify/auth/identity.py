"""Identity verification — bearer token → UserIdentity.

Learn: This is the single place a credential becomes an identity. The REST
dependency and the WebSocket gate both call IdentityVerifier.verify(), so
a token that works on one transport works on the other, and fails the same
way on both.

Failure taxonomy (all subclasses of AuthError):
- MissingCredential: no token at all
- InvalidCredential: bad signature, malformed, expired, or a bad `sub`
- IdentityNotFound: token is fine but the user is gone (deleted account)
- InternalVerificationError: the user lookup itself blew up
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatify.auth.jwt import TokenError, verify_token
from chatify.db.models import User


class AuthError(Exception):
    """Base class for credential → identity failures."""


class MissingCredential(AuthError):
    pass


class InvalidCredential(AuthError):
    pass


class IdentityNotFound(AuthError):
    pass


class InternalVerificationError(AuthError):
    pass


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated user attached to a request or a connection.

    `id` is the string form of the user's UUID — the key used by the
    presence registry and the `sub` claim of the token.
    """

    id: str
    full_name: str
    email: str = ""
    profile_pic: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserIdentity":
        return cls(
            id=str(user.id),
            full_name=user.full_name,
            email=user.email,
            profile_pic=user.profile_pic or "",
        )

    @property
    def uuid(self) -> uuid.UUID:
        return uuid.UUID(self.id)


class IdentityVerifier:
    """Resolve a bearer token to the user it names.

    The token check is a pure function of the token, the secret and the
    clock. The user lookup uses the caller's session when one is passed
    (REST requests), otherwise a short-lived session from the factory
    (WebSocket handshakes).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def verify(
        self, token: Optional[str], db: Optional[AsyncSession] = None
    ) -> UserIdentity:
        if not token:
            raise MissingCredential("No token provided")

        user_id = self._decode_subject(token)

        try:
            if db is not None:
                user = await db.get(User, user_id)
            else:
                async with self.session_factory() as session:
                    user = await session.get(User, user_id)
        except SQLAlchemyError as e:
            raise InternalVerificationError(f"User lookup failed: {e}") from e

        if user is None:
            raise IdentityNotFound("User not found")
        return UserIdentity.from_user(user)

    @staticmethod
    def _decode_subject(token: str) -> uuid.UUID:
        try:
            payload = verify_token(token)
        except TokenError as e:
            raise InvalidCredential(str(e)) from e

        sub = payload.get("sub")
        if payload.get("type", "access") != "access" or not sub:
            raise InvalidCredential("Token has no subject")
        try:
            return uuid.UUID(str(sub))
        except ValueError as e:
            raise InvalidCredential("Token subject is not a user id") from e
