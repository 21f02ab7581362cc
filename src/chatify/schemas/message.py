"""Pydantic schemas for direct messages.

Learn: MessageRead is both the REST response body and the `newMessage`
WebSocket payload — the live push and the later fetch carry the same shape.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from chatify.db.models import MESSAGE_TEXT_MAX_LENGTH

# Largest accepted image payload (a base64 data URI or URL), in characters.
IMAGE_DATA_MAX_LENGTH = 5 * 1024 * 1024


class MessageCreate(BaseModel):
    text: Optional[str] = None
    image: Optional[str] = Field(
        None, max_length=IMAGE_DATA_MAX_LENGTH, description="Data URI or URL to upload"
    )

    @field_validator("text")
    @classmethod
    def trim_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if len(v) > MESSAGE_TEXT_MAX_LENGTH:
            raise ValueError(
                f"Message text must be at most {MESSAGE_TEXT_MAX_LENGTH} characters"
            )
        return v or None

    @field_validator("image")
    @classmethod
    def empty_image_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class MessageRead(BaseModel):
    id: int
    sender_id: uuid.UUID
    receiver_id: uuid.UUID
    text: Optional[str]
    image: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
