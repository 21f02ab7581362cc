"""Test fixtures — a fresh app, an isolated database, and fake collaborators.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own app from create_app(), so its own RealtimeHub
   and presence registry — no presence state leaks between tests.
2. Each test gets its own in-memory SQLite database (StaticPool keeps the
   one connection alive), created from the ORM metadata. Point
   CHATIFY_TEST_DATABASE_URL at PostgreSQL to run against the real thing.
3. External collaborators (image host) are replaced via
   app.dependency_overrides; nothing leaves the process.

The env vars below must be set before chatify is imported.
"""

import os

os.environ.setdefault("CHATIFY_ENVIRONMENT", "test")
os.environ.setdefault("CHATIFY_BCRYPT_ROUNDS", "4")
os.environ.setdefault("CHATIFY_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from chatify.auth.dependencies import get_identity_verifier
from chatify.auth.identity import IdentityVerifier, UserIdentity
from chatify.auth.jwt import create_access_token
from chatify.auth.password import hash_password
from chatify.db.engine import get_db
from chatify.db.models import Base, User
from chatify.main import create_app
from chatify.realtime.connection import Connection
from chatify.services.media_service import ImageUploadError, get_image_host

TEST_DB_URL = os.environ.get(
    "CHATIFY_TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)


# ─── Fakes ───────────────────────────────────────────────


class RecordingConnection(Connection):
    """A Connection that records what it was sent instead of writing to a socket."""

    def __init__(self, user: UserIdentity, connection_id: Optional[str] = None, fail: bool = False):
        super().__init__(user, connection_id)
        self.events: list[tuple[str, Any]] = []
        self.closed: Optional[tuple[int, str]] = None
        self.fail = fail

    async def send_event(self, event: str, data: Any) -> None:
        if self.fail:
            raise ConnectionResetError("socket is gone")
        self.events.append((event, data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = (code, reason)

    def received(self, event: str) -> list[Any]:
        return [data for name, data in self.events if name == event]


class FakeImageHost:
    """Stands in for Cloudinary: returns a predictable URL, or fails on demand."""

    def __init__(self):
        self.uploads: list[str] = []
        self.fail = False

    async def upload(self, image: str) -> str:
        if self.fail:
            raise ImageUploadError("image host is down")
        self.uploads.append(image)
        return f"https://images.test/{len(self.uploads)}.png"


# ─── App + database ──────────────────────────────────────


@pytest.fixture()
def app():
    """A fresh application (and presence registry) per test."""
    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def hub(app):
    return app.state.hub


@pytest.fixture()
def make_connection():
    """Factory for RecordingConnection objects."""
    return RecordingConnection


@pytest_asyncio.fixture()
async def db_engine():
    engine_kwargs = {"echo": False}
    if TEST_DB_URL.startswith("sqlite"):
        engine_kwargs["poolclass"] = StaticPool
    engine = create_async_engine(TEST_DB_URL, **engine_kwargs)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def image_host():
    return FakeImageHost()


@pytest_asyncio.fixture()
async def client(app, db_session, session_factory, image_host):
    """HTTP client with the app's database and image host overridden.

    Learn: Auth is NOT mocked — requests carry real tokens and go through
    the real IdentityVerifier, pointed at the test database.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_verifier] = lambda: IdentityVerifier(session_factory)
    app.dependency_overrides[get_image_host] = lambda: image_host

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ─── Users ───────────────────────────────────────────────


@pytest_asyncio.fixture()
async def make_user(db_session):
    """Create a user directly in the database. Returns (user, auth headers)."""

    async def _make(full_name: str, email: Optional[str] = None, password: str = "password123"):
        user = User(
            email=email or f"{full_name.lower().replace(' ', '.')}@example.com",
            full_name=full_name,
            password_hash=hash_password(password),
        )
        db_session.add(user)
        await db_session.commit()
        token = create_access_token(str(user.id))
        return user, {"Authorization": f"Bearer {token}"}

    return _make
