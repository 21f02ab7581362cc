"""Message service — the conversation store.

Learn: Everything the REST layer needs to read and write direct messages.
Pushing a new message to the receiver is NOT done here: the route calls
the EventRouter after send_message() has committed, so a push can never
roll back (or delay) the write.

Conversations are ordered by message id, i.e. insertion order.
"""

import uuid
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from chatify.db.models import Message, User


class ReceiverNotFoundError(Exception):
    pass


class InvalidMessageError(Exception):
    pass


class MessageService:
    """Business logic for direct messaging between users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_contacts(self, user_id: uuid.UUID) -> list[User]:
        """Every user except the caller."""
        result = await self.db.execute(
            select(User).where(User.id != user_id).order_by(User.full_name)
        )
        return list(result.scalars().all())

    async def get_conversation(
        self, user_id: uuid.UUID, other_id: uuid.UUID
    ) -> list[Message]:
        """All messages between two users, oldest first."""
        result = await self.db.execute(
            select(Message)
            .where(
                or_(
                    (Message.sender_id == user_id) & (Message.receiver_id == other_id),
                    (Message.sender_id == other_id) & (Message.receiver_id == user_id),
                )
            )
            .order_by(Message.id)
        )
        return list(result.scalars().all())

    async def list_chat_partners(self, user_id: uuid.UUID) -> list[User]:
        """Distinct users the caller has sent to or received from."""
        result = await self.db.execute(
            select(Message.sender_id, Message.receiver_id).where(
                or_(Message.sender_id == user_id, Message.receiver_id == user_id)
            )
        )
        partner_ids = {
            receiver if sender == user_id else sender
            for sender, receiver in result.all()
        }
        if not partner_ids:
            return []

        users = await self.db.execute(
            select(User).where(User.id.in_(partner_ids)).order_by(User.full_name)
        )
        return list(users.scalars().all())

    async def validate_send(
        self,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        text: Optional[str],
        has_image: bool,
    ) -> None:
        """Reject a send before any side effect (like an image upload) happens."""
        if not text and not has_image:
            raise InvalidMessageError("Text or image is required.")
        if sender_id == receiver_id:
            raise InvalidMessageError("Cannot send messages to yourself.")
        if await self.db.get(User, receiver_id) is None:
            raise ReceiverNotFoundError("Receiver not found.")

    async def send_message(
        self,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Message:
        """Persist a new message. Returns it once committed."""
        await self.validate_send(sender_id, receiver_id, text, image_url is not None)

        msg = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            image=image_url,
        )
        self.db.add(msg)
        await self.db.commit()
        return msg
