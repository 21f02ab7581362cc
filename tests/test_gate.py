"""Tests for the WebSocket connection gate and cookie parsing."""

import pytest
from starlette.requests import HTTPConnection

from chatify.auth.identity import (
    IdentityNotFound,
    InvalidCredential,
    UserIdentity,
)
from chatify.realtime.gate import (
    REJECTED_REASON,
    ConnectionGate,
    HandshakeRejected,
    extract_token,
)

ALICE = UserIdentity(id="6f1c1f5e-7a0e-4c39-9d55-0a4f0f6b2a11", full_name="Alice")


class StubVerifier:
    """Verifier that accepts one token, or raises whatever it's given."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.seen: list[str] = []

    async def verify(self, token, db=None):
        self.seen.append(token)
        if self.error is not None:
            raise self.error
        if token == "good-token":
            return ALICE
        raise InvalidCredential("Invalid token: Signature verification failed")


def _handshake(cookie: str | None = None) -> HTTPConnection:
    headers = []
    if cookie is not None:
        headers.append((b"cookie", cookie.encode()))
    scope = {
        "type": "websocket",
        "path": "/ws",
        "headers": headers,
        "client": ("127.0.0.1", 50000),
    }
    return HTTPConnection(scope)


# ─── extract_token ──────────────────────────────────────


def test_extract_token_among_other_cookies():
    assert extract_token("a=1; jwt=abc.def.ghi; theme=dark") == "abc.def.ghi"


def test_extract_token_only_cookie():
    assert extract_token("jwt=xyz") == "xyz"


def test_extract_token_missing_header():
    assert extract_token(None) is None
    assert extract_token("") is None


def test_extract_token_missing_field():
    assert extract_token("a=1; theme=dark") is None


def test_extract_token_empty_value():
    assert extract_token("jwt=; a=1") is None


def test_extract_token_ignores_similar_names():
    assert extract_token("notjwt=nope; jwt_old=nope") is None


def test_extract_token_custom_cookie_name():
    assert extract_token("session=s1; jwt=j1", name="session") == "s1"


# ─── ConnectionGate ─────────────────────────────────────


@pytest.mark.asyncio
async def test_gate_accepts_valid_cookie():
    verifier = StubVerifier()
    gate = ConnectionGate(verifier, cookie_name="jwt")

    identity = await gate.authenticate(_handshake("theme=dark; jwt=good-token"))

    assert identity == ALICE
    assert verifier.seen == ["good-token"]


@pytest.mark.asyncio
async def test_gate_rejects_missing_cookie_without_calling_verifier():
    verifier = StubVerifier()
    gate = ConnectionGate(verifier, cookie_name="jwt")

    with pytest.raises(HandshakeRejected) as exc:
        await gate.authenticate(_handshake())

    assert exc.value.reason == REJECTED_REASON
    assert exc.value.cause == "MissingCredential"
    assert verifier.seen == []


@pytest.mark.asyncio
async def test_gate_rejects_invalid_token():
    gate = ConnectionGate(StubVerifier(), cookie_name="jwt")

    with pytest.raises(HandshakeRejected) as exc:
        await gate.authenticate(_handshake("jwt=forged"))

    assert exc.value.reason == REJECTED_REASON
    assert exc.value.cause == "InvalidCredential"


@pytest.mark.asyncio
async def test_gate_rejects_deleted_user():
    gate = ConnectionGate(StubVerifier(IdentityNotFound("User not found")), cookie_name="jwt")

    with pytest.raises(HandshakeRejected) as exc:
        await gate.authenticate(_handshake("jwt=good-token"))

    assert exc.value.reason == REJECTED_REASON
    assert exc.value.cause == "IdentityNotFound"


@pytest.mark.asyncio
async def test_gate_fails_closed_on_unexpected_error():
    gate = ConnectionGate(StubVerifier(RuntimeError("db exploded")), cookie_name="jwt")

    with pytest.raises(HandshakeRejected) as exc:
        await gate.authenticate(_handshake("jwt=good-token"))

    assert exc.value.reason == REJECTED_REASON
    assert exc.value.cause == "InternalVerificationError"


@pytest.mark.asyncio
async def test_gate_ignores_bearer_header():
    """Browsers can't set headers on an upgrade; only the cookie counts."""
    scope = {
        "type": "websocket",
        "path": "/ws",
        "headers": [(b"authorization", b"Bearer good-token")],
        "client": ("127.0.0.1", 50000),
    }
    gate = ConnectionGate(StubVerifier(), cookie_name="jwt")

    with pytest.raises(HandshakeRejected):
        await gate.authenticate(HTTPConnection(scope))
