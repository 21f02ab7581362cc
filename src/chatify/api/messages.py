"""Message API routes.

Learn: send_message is where the stateless REST layer meets the live
WebSocket layer:
1. Validate (text or image, not to yourself, receiver exists)
2. Upload the image, if any
3. Persist + commit the message
4. Hand it to the EventRouter — a best-effort push to the receiver

Step 4 can't fail the request: the router swallows and logs its own errors.
"""

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from chatify.auth.dependencies import get_current_user
from chatify.auth.identity import UserIdentity
from chatify.db.engine import get_db
from chatify.realtime.deps import get_event_router
from chatify.realtime.router import EventRouter
from chatify.schemas.message import MessageCreate, MessageRead
from chatify.schemas.user import UserRead
from chatify.services.media_service import ImageHost, ImageUploadError, get_image_host
from chatify.services.message_service import (
    InvalidMessageError,
    MessageService,
    ReceiverNotFoundError,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/messages")


def _msg_svc(db: AsyncSession = Depends(get_db)) -> MessageService:
    return MessageService(db)


@router.get("/contacts", response_model=list[UserRead])
async def list_contacts(
    identity: UserIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
):
    """Every other user — people you could start a chat with."""
    return await svc.list_contacts(identity.uuid)


@router.get("/chats", response_model=list[UserRead])
async def list_chat_partners(
    identity: UserIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
):
    """Users you've already exchanged messages with."""
    return await svc.list_chat_partners(identity.uuid)


@router.get("/{user_id}", response_model=list[MessageRead])
async def get_conversation(
    user_id: uuid.UUID,
    identity: UserIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
):
    """The conversation with another user, oldest first."""
    return await svc.get_conversation(identity.uuid, user_id)


@router.post("/send/{user_id}", response_model=MessageRead, status_code=201)
async def send_message(
    user_id: uuid.UUID,
    body: MessageCreate,
    identity: UserIdentity = Depends(get_current_user),
    svc: MessageService = Depends(_msg_svc),
    images: ImageHost = Depends(get_image_host),
    events: EventRouter = Depends(get_event_router),
):
    """Send a message. Pushed live to the receiver if they're connected."""
    try:
        await svc.validate_send(identity.uuid, user_id, body.text, body.image is not None)
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReceiverNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    image_url = None
    if body.image:
        try:
            image_url = await images.upload(body.image)
        except ImageUploadError as e:
            logger.warning("messages.image_upload_failed", sender_id=identity.id, error=str(e))
            raise HTTPException(status_code=502, detail="Image upload failed")

    msg = await svc.send_message(
        sender_id=identity.uuid,
        receiver_id=user_id,
        text=body.text,
        image_url=image_url,
    )
    message = MessageRead.model_validate(msg)

    await events.deliver_new_message(str(user_id), message.model_dump(mode="json"))
    return message
