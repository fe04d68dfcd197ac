# giveaway/schemas/address.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

AddressType = Literal["home", "work", "other"]


def _required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("field cannot be empty")
    return v


class AddressCreate(SQLModel):
    """
    New saved address. `state` drives the mug series code of orders
    shipped here, so it is required.
    """

    model_config = ConfigDict(extra="forbid")

    type: AddressType = "home"
    is_default: bool = False
    full_name: str = Field(max_length=100)
    phone: str = Field(max_length=20)
    address_line1: str = Field(max_length=255)
    city: str = Field(max_length=100)
    district: str | None = Field(default=None, max_length=100)
    state: str = Field(max_length=100)
    postal_code: str = Field(max_length=20)
    country: str = Field(default="India", max_length=100)
    landmark: str | None = Field(default=None, max_length=255)

    @field_validator("full_name", "phone", "address_line1", "city", "state", "postal_code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return _required(v)


class AddressUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    type: AddressType | None = None
    is_default: bool | None = None
    full_name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    address_line1: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=100)
    district: str | None = Field(default=None, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)
    country: str | None = Field(default=None, max_length=100)
    landmark: str | None = Field(default=None, max_length=255)

    @field_validator("full_name", "phone", "address_line1", "city", "state", "postal_code")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _required(v)


class AddressRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: AddressType
    is_default: bool
    full_name: str
    phone: str
    address_line1: str
    city: str
    district: str | None
    state: str
    postal_code: str
    country: str
    landmark: str | None
    created_at: datetime
