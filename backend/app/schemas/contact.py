from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ContactCreate(BaseModel):
    """Fields of a public submission, validated before anything touches disk."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2)
    email: str
    message: str = Field(min_length=3)
    phone: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email_shape(cls, value: str) -> str:
        if not EMAIL_RE.match(value):
            raise PydanticCustomError("email", "Invalid email address")
        return value

    @field_validator("phone")
    @classmethod
    def _blank_phone_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class ContactRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    message: str
    screenshot: Optional[str] = None
    ip: Optional[str] = None
    created_at: str


class ContactCreated(BaseModel):
    status: str = "ok"
    id: str


class ContactList(BaseModel):
    count: int
    contacts: list[ContactRecord]
