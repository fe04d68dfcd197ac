# giveaway/models/mug.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class MugAssignment(SQLModel, table=True):
    """
    One physical mug unit tied to a buyer profile of a paid order.

    unit_id is a single global ascending number (not per series), unique
    across the whole table. Rows are written once when the order's payment
    is confirmed and never updated afterwards.
    """

    __tablename__ = "mug_assignments"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    profile_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    unit_id: int = Field(
        ge=1,
        unique=True,
        index=True,
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
