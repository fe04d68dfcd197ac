# giveaway/repositories/sequence_repo.py
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from giveaway.models.serial import SequenceCounter


class SequenceCounterRepository:
    """
    Named counters incremented under a row lock (SELECT ... FOR UPDATE).

    The lock is held until the caller's transaction ends, so concurrent
    reservations on the same counter are serialised by the database.
    """

    def _get_locked(self, session: Session, name: str) -> SequenceCounter | None:
        stmt = (
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
        )
        return session.exec(stmt).first()

    def reserve_block(
        self,
        session: Session,
        name: str,
        size: int,
        seed: Callable[[], int],
    ) -> int:
        """
        Reserve `size` consecutive values and return the first one.

        Args:
            name: counter name, e.g. "serial:TN01" or "mug_unit"
            size: how many values to reserve (>= 1)
            seed: returns the highest value already in use; only called
                  when the counter row does not exist yet

        Returns:
            The first reserved value; the block is [first, first + size).
        """
        counter = self._get_locked(session, name)

        if counter is None:
            counter = SequenceCounter(name=name, last_value=seed())
            try:
                with session.begin_nested():
                    session.add(counter)
                    session.flush()
            except IntegrityError:
                # Another request created the row first; use theirs.
                counter = self._get_locked(session, name)
                if counter is None:
                    raise

        first = counter.last_value + 1
        counter.last_value += size
        session.add(counter)
        session.flush()
        return first
