# giveaway/repositories/serial_repo.py
from sqlalchemy import String, cast, func
from sqlmodel import Session, select

from giveaway.models.order import OrderItem
from giveaway.models.serial import IssuedSerial


class SerialRepository:
    """
    Read side of the issued-serial history, plus the registry writes.

    History lives in two places:
      - order_items.mug_serials (list or legacy comma-joined string)
      - issued_serials (one row per serial, unique per series + number)

    Parsing of the stored values belongs to the allocator; this class only
    fetches raw rows.
    """

    def list_stored_serials(
        self,
        session: Session,
        series_code: str,
    ) -> list[list[str] | str]:
        """
        Raw mug_serials values of every line item that mentions `series_code`.

        The LIKE on the JSON text is only a prefilter; callers must still
        match each token against the series code.
        """
        stmt = select(OrderItem.mug_serials).where(
            OrderItem.mug_serials.is_not(None),
            cast(OrderItem.mug_serials, String).like(f"%{series_code}%"),
        )
        return [raw for raw in session.exec(stmt).all() if raw]

    def max_registered_sequence(self, session: Session, series_code: str) -> int:
        stmt = select(func.max(IssuedSerial.sequence_number)).where(
            IssuedSerial.series_code == series_code
        )
        return int(session.exec(stmt).one() or 0)

    def register(self, session: Session, rows: list[IssuedSerial]) -> None:
        """
        Insert registry rows and flush so unique violations surface now.
        """
        session.add_all(rows)
        session.flush()
