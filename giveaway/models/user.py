# giveaway/models/user.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Account that owns profiles, addresses, orders and mug assignments.

    Identity:
      - id: MUST match the identity provider's user id (UUID from JWT "sub")

    Role:
      - "user" | "admin"
      - "guest" is represented by the absence of a row / missing token.

    Passwords and social logins live with the identity provider. We only
    mirror identity, contact details, and application role.
    """

    __tablename__ = "users"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches the identity provider user id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from the identity token",
    )

    name: str = Field(
        max_length=50,
        description="Display name; first part of email by default",
    )

    phone: str | None = Field(
        default=None,
        max_length=20,
        unique=True,
        description="Unique across accounts when set",
    )

    # Application role
    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
