# giveaway/models/address.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Address(SQLModel, table=True):
    """
    Saved shipping address. Orders copy it into their own shipping
    snapshot, so edits here never change historical orders.
    """

    __tablename__ = "addresses"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # home | work | other
    type: str = Field(default="home")
    is_default: bool = Field(default=False)

    full_name: str = Field(max_length=100)
    phone: str = Field(max_length=20)
    address_line1: str
    city: str = Field(max_length=100)
    district: str | None = Field(default=None, max_length=100)
    state: str = Field(max_length=100)
    postal_code: str = Field(max_length=20)
    country: str = Field(default="India", max_length=100)
    landmark: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
