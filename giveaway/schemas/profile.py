# giveaway/schemas/profile.py
import uuid
from datetime import date, datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

ProfileType = Literal["user", "buyer"]


class ProfileFields(SQLModel):
    """
    Editable profile fields.

    state / district are free text; for buyer profiles they are what the
    recipient's mug is registered under, not the order's shipping address.
    """

    model_config = ConfigDict(extra="forbid")

    phone: str | None = Field(default=None, max_length=20)
    email: EmailStr | None = None
    date_of_birth: date | None = None
    state: str | None = Field(default=None, max_length=100)
    district: str | None = Field(default=None, max_length=100)
    status: str | None = Field(default=None, max_length=255)

    @field_validator("state", "district", "status", "phone")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class BuyerProfileCreate(ProfileFields):
    name: str = Field(max_length=100)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class ProfileUpdate(ProfileFields):
    """Partial update; unset fields are left alone."""

    name: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class ProfileRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    profile_type: ProfileType
    name: str
    phone: str | None
    email: str | None
    date_of_birth: date | None
    state: str | None
    district: str | None
    status: str | None
    created_at: datetime
    updated_at: datetime
