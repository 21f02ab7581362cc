"""Pydantic schemas for users and auth requests.

Learn: Email format is checked with the same simple pattern the frontend
uses — anything@anything.tld, no whitespace. Full RFC validation isn't
the point; catching typos is.
"""

import re
import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from chatify.schemas.message import IMAGE_DATA_MAX_LENGTH

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SignupRequest(BaseModel):
    full_name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255)
    password: str = Field(min_length=6)

    @field_validator("full_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Full name is required")
        return v

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(BaseModel):
    profile_pic: str = Field(
        min_length=1,
        max_length=IMAGE_DATA_MAX_LENGTH,
        description="Data URI or URL of the new picture",
    )


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    full_name: str
    profile_pic: str
    created_at: datetime

    model_config = {"from_attributes": True}
