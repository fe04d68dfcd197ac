# giveaway/schemas/mug.py
import uuid
from datetime import datetime

from sqlmodel import SQLModel


class MugAssignmentRead(SQLModel):
    """A mug unit assigned to one of the user's buyer profiles."""

    id: uuid.UUID
    order_id: uuid.UUID
    profile_id: uuid.UUID
    user_id: uuid.UUID
    unit_id: int
    created_at: datetime
