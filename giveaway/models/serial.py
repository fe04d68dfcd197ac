# giveaway/models/serial.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class IssuedSerial(SQLModel, table=True):
    """
    Registry of every serial handed out.

    The unique (series_code, sequence_number) pair is the safety net for
    concurrent checkouts: two requests that computed the same next number
    cannot both commit it. The loser gets an IntegrityError and rescans.
    """

    __tablename__ = "issued_serials"
    __table_args__ = (
        UniqueConstraint(
            "series_code",
            "sequence_number",
            name="uq_issued_serials_series_seq",
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
    )

    series_code: str = Field(max_length=4, index=True)
    sequence_number: int = Field(ge=1)
    serial: str = Field(max_length=16)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class SequenceCounter(SQLModel, table=True):
    """
    Named counter row for the "counter" allocation strategy.

    Names in use:
      - "serial:<SERIES>" : last issued sequence number of a series
      - "mug_unit"        : last issued global mug unit id

    Always read with SELECT ... FOR UPDATE before incrementing.
    """

    __tablename__ = "sequence_counters"

    name: str = Field(primary_key=True, max_length=32)
    last_value: int = Field(default=0, ge=0)
