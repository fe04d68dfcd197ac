# giveaway/services/serial_allocator.py
"""
Mug serial allocation.

A serial is "<series code> <7-digit sequence>", e.g. "TN01 0000042".
For a series code, the next block starts at max(issued) + 1, where
"issued" is everything found in order_items.mug_serials plus the
issued_serials registry.

Two strategies (Settings.SERIAL_ALLOCATION_STRATEGY):

  scan     Compute max + 1 from history, then write the block into the
           registry inside a savepoint. Concurrent checkouts on the same
           series can compute the same start; the registry's unique key
           makes the loser fail, and it rescans (bounded retries).

  counter  Increment a "serial:<CODE>" counter row under a row lock,
           seeded from the history scan on first use.

Both return the same numbers for the same history.
"""
import logging
import re
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from giveaway.core.config import Settings, get_settings
from giveaway.models.serial import IssuedSerial
from giveaway.repositories.sequence_repo import SequenceCounterRepository
from giveaway.repositories.serial_repo import SerialRepository
from giveaway.services.series_code import SERIES_CODE_RE

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 7


class SerialAllocationError(Exception):
    """Serials could not be issued (history unreadable or retries exhausted)."""


def normalize_serials(raw: Any) -> list[str]:
    """
    Normalise a stored mug_serials value into a list of serial strings.

    Accepts the current shape (list of strings) and the legacy shape
    (one comma-joined string). Anything else yields [].
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        chunks = [raw]
    elif isinstance(raw, (list, tuple)):
        chunks = [v for v in raw if isinstance(v, str)]
    else:
        return []

    serials: list[str] = []
    for chunk in chunks:
        for token in chunk.split(","):
            token = token.strip()
            if token:
                serials.append(token)
    return serials


def format_serial(series_code: str, sequence_number: int) -> str:
    return f"{series_code} {sequence_number:0{SEQUENCE_WIDTH}d}"


def parse_sequence_number(token: str, series_code: str) -> int | None:
    """
    Sequence number of `token` if it belongs to `series_code`, else None.

    "TN01 0000007" -> 7, "TN010000007" -> 7, "KL01 0000007" -> None.
    """
    match = re.match(
        rf"^{re.escape(series_code)} ?(\d+)$",
        token.strip().upper(),
    )
    if not match:
        return None
    return int(match.group(1))


def max_sequence_in(raw_values: list[Any], series_code: str) -> int:
    """Highest sequence number for `series_code` across stored values, or 0."""
    highest = 0
    for raw in raw_values:
        for token in normalize_serials(raw):
            number = parse_sequence_number(token, series_code)
            if number is not None and number > highest:
                highest = number
    return highest


class SerialAllocator:
    """
    Issues contiguous blocks of serials per series code.

    The returned serials are reserved in the caller's transaction; they
    become permanent when the caller commits the order that carries them.
    """

    def __init__(
        self,
        serial_repo: SerialRepository,
        counter_repo: SequenceCounterRepository,
        settings: Settings | None = None,
    ):
        self.serial_repo = serial_repo
        self.counter_repo = counter_repo
        self.settings = settings or get_settings()

    def allocate_serials(
        self,
        session: Session,
        series_code: str,
        quantity: int,
    ) -> list[str]:
        """
        Allocate `quantity` new serials for `series_code`.

        Raises:
            ValueError: if quantity < 1 or the code is not two letters
                followed by two digits.
            SerialAllocationError: if history cannot be read or no free
                block was found within the retry budget.
        """
        code = series_code.strip().upper()
        if not SERIES_CODE_RE.match(code):
            raise ValueError(f"Series code must look like 'TN01', got {series_code!r}")
        if quantity < 1:
            raise ValueError("quantity must be >= 1")

        if self.settings.SERIAL_ALLOCATION_STRATEGY == "counter":
            return self._allocate_with_counter(session, code, quantity)
        return self._allocate_with_scan(session, code, quantity)

    def next_sequence(self, session: Session, series_code: str) -> int:
        """max(issued) + 1 for the series, 1 for a fresh series."""
        try:
            stored = self.serial_repo.list_stored_serials(session, series_code)
            registered = self.serial_repo.max_registered_sequence(session, series_code)
        except SQLAlchemyError as exc:
            raise SerialAllocationError(
                f"Failed to read serial history for {series_code}"
            ) from exc
        return max(max_sequence_in(stored, series_code), registered) + 1

    # -------- strategies --------

    def _allocate_with_scan(
        self,
        session: Session,
        code: str,
        quantity: int,
    ) -> list[str]:
        attempts = max(self.settings.SERIAL_ALLOCATION_MAX_RETRIES, 1)
        for attempt in range(1, attempts + 1):
            start = None
            try:
                # Scan and registry write roll back together.
                with session.begin_nested():
                    start = self.next_sequence(session, code)
                    return self._register_block(session, code, start, quantity)
            except IntegrityError:
                logger.warning(
                    f"Serial block {code} from {start} (x{quantity}) was "
                    f"taken concurrently (attempt {attempt}/{attempts}); rescanning"
                )
            except SQLAlchemyError as exc:
                raise SerialAllocationError(
                    f"Failed to write serial registry for {code}"
                ) from exc

        raise SerialAllocationError(
            f"Could not reserve {quantity} serial(s) for {code} after {attempts} attempts"
        )

    def _allocate_with_counter(
        self,
        session: Session,
        code: str,
        quantity: int,
    ) -> list[str]:
        try:
            with session.begin_nested():
                start = self.counter_repo.reserve_block(
                    session,
                    f"serial:{code}",
                    quantity,
                    seed=lambda: self.next_sequence(session, code) - 1,
                )
                return self._register_block(session, code, start, quantity)
        except IntegrityError as exc:
            # The counter lags behind history written outside it.
            raise SerialAllocationError(
                f"Counter for {code} issued an already used number"
            ) from exc
        except SQLAlchemyError as exc:
            raise SerialAllocationError(f"Counter update failed for {code}") from exc

    def _register_block(
        self,
        session: Session,
        code: str,
        start: int,
        quantity: int,
    ) -> list[str]:
        serials = [format_serial(code, n) for n in range(start, start + quantity)]
        rows = [
            IssuedSerial(series_code=code, sequence_number=n, serial=s)
            for n, s in zip(range(start, start + quantity), serials)
        ]
        self.serial_repo.register(session, rows)
        return serials
