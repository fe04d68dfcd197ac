# giveaway/models/profile.py
import uuid
from datetime import date, datetime, timezone

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Sub-identity under an account.

    profile_type:
      - "user"  : the account holder; exactly one per account
      - "buyer" : a gift recipient / delivery target; any number per account

    Buyer profiles are what mug units get assigned to once an order is paid.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    profile_type: str = Field(
        default="buyer",
        index=True,
        description="user | buyer",
    )

    name: str = Field(max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    date_of_birth: date | None = None

    state: str | None = Field(default=None, max_length=100)
    district: str | None = Field(default=None, max_length=100)
    status: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
