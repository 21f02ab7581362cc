"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Alembic migrations under db/migrations mirror these.

Key concepts:
- UUID primary keys for users; the string form is the identity the
  presence layer and the JWT `sub` claim carry around
- Integer autoincrement ids for messages, so ordering by id is insertion
  order within a conversation
- Portable column types (sa.Uuid, not the PostgreSQL dialect type) so the
  same models run on SQLite for local development and tests
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MESSAGE_TEXT_MAX_LENGTH = 2000


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


class User(Base):
    """A chat user.

    Learn: password_hash never leaves the service layer — every API
    response goes through UserRead, which doesn't carry it.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=new_uuid
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_pic: Mapped[str] = mapped_column(
        String(1024), nullable=False, default=""
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Message(Base):
    """A direct message between two users.

    Learn: Messages are immutable once written. At least one of text/image
    is set — enforced in the service layer, not the schema, so the error
    can be reported as a 400 rather than an IntegrityError.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_sender_receiver", "sender_id", "receiver_id"),
        Index("idx_messages_receiver", "receiver_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sender_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    text: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # trimmed, ≤ MESSAGE_TEXT_MAX_LENGTH
    image: Mapped[Optional[str]] = mapped_column(
        String(1024), nullable=True
    )  # hosted image URL
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
