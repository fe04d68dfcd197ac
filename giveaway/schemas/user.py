# giveaway/schemas/user.py
import re
import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

# "guest" has no row, so it is not a stored role.
Role = Literal["user", "admin"]

PHONE_RE = re.compile(r"^\+?\d{10,15}$")


class AccountRead(SQLModel):
    """
    The signed-in account merged with its "user" profile.

    `profile_complete` is True once the account has a phone number and a
    home state, which is what checkout needs to reach the buyer.
    """

    id: uuid.UUID
    email: str
    name: str
    phone: str | None = None
    role: Role
    created_at: datetime

    user_profile_id: uuid.UUID
    state: str | None = None
    district: str | None = None
    date_of_birth: date | None = None
    profile_complete: bool


class AccountUpdate(SQLModel):
    """
    Partial update of the account and its user profile.

    `name` and `phone` are written to both; `state`, `district` and
    `date_of_birth` live on the profile only. Email belongs to the
    identity provider and cannot be changed here.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=50)
    phone: str | None = Field(default=None, max_length=20)
    state: str | None = Field(default=None, max_length=100)
    district: str | None = Field(default=None, max_length=100)
    date_of_birth: date | None = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = re.sub(r"[\s-]", "", v)
        if not v:
            return None
        if not PHONE_RE.match(v):
            raise ValueError("phone must be 10-15 digits, optionally prefixed with +")
        return v

    @field_validator("state", "district")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return " ".join(v.split()) or None
