# giveaway/services/mug_service.py
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from giveaway.core.config import Settings, get_settings
from giveaway.models.mug import MugAssignment
from giveaway.models.order import Order
from giveaway.repositories.mug_repo import MugAssignmentRepository
from giveaway.repositories.order_repo import OrderRepository
from giveaway.repositories.sequence_repo import SequenceCounterRepository

logger = logging.getLogger(__name__)

MUG_UNIT_COUNTER = "mug_unit"


class MugService:
    """
    Assigns global mug unit ids to the buyer profiles of a paid order.

    Responsibilities:
      - one assignment batch per order (second call is a no-op)
      - one row per buyer profile, in the order's profile order
      - unit ids continue from the global max (or the "mug_unit" counter)
      - never let a failure here undo the payment confirmation
    """

    def __init__(
        self,
        mug_repo: MugAssignmentRepository,
        order_repo: OrderRepository,
        counter_repo: SequenceCounterRepository,
        settings: Settings | None = None,
    ):
        self.mug_repo = mug_repo
        self.order_repo = order_repo
        self.counter_repo = counter_repo
        self.settings = settings or get_settings()

    def assign_mug_units(self, session: Session, order: Order) -> None:
        """
        Create MugAssignment rows for a confirmed order.

        Steps:
          1. Skip if the order already has assignments.
          2. Skip if the order has no buyer profiles.
          3. Reserve one unit id per profile, starting at max + 1.
          4. Insert each row in its own savepoint; a failed row is logged
             and skipped, the rest are kept.
          5. Commit.

        Any error is logged and swallowed; the session is rolled back.
        """
        try:
            self._assign(session, order)
        except Exception:
            logger.exception(f"Mug assignment failed for order {order.order_number}")
            session.rollback()

    def _assign(self, session: Session, order: Order) -> None:
        if self.mug_repo.exists_for_order(session, order.id):
            logger.info(f"Order {order.order_number} already has mug assignments")
            return

        profile_ids = self.order_repo.list_buyer_profile_ids(session, order.id)
        if not profile_ids:
            logger.info(f"Order {order.order_number} has no buyer profiles to assign")
            return

        first_unit_id = self._reserve_unit_ids(session, len(profile_ids))

        inserted: list[int] = []
        for offset, profile_id in enumerate(profile_ids):
            unit_id = first_unit_id + offset
            if self._insert_one(session, order, profile_id, unit_id):
                inserted.append(unit_id)

        session.commit()
        logger.info(
            f"Assigned mug units {inserted} to order {order.order_number} "
            f"({len(inserted)}/{len(profile_ids)} rows)"
        )

    def _reserve_unit_ids(self, session: Session, count: int) -> int:
        if self.settings.SERIAL_ALLOCATION_STRATEGY == "counter":
            return self.counter_repo.reserve_block(
                session,
                MUG_UNIT_COUNTER,
                count,
                seed=lambda: self.mug_repo.max_unit_id(session),
            )
        return self.mug_repo.max_unit_id(session) + 1

    def _insert_one(
        self,
        session: Session,
        order: Order,
        profile_id: uuid.UUID,
        unit_id: int,
    ) -> bool:
        row = MugAssignment(
            order_id=order.id,
            profile_id=profile_id,
            user_id=order.user_id,
            unit_id=unit_id,
        )
        try:
            with session.begin_nested():
                self.mug_repo.insert(session, row)
        except IntegrityError:
            logger.warning(
                f"Mug unit {unit_id} for profile {profile_id} "
                f"(order {order.order_number}) not inserted: duplicate key"
            )
            return False
        return True

    def list_user_mugs(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[MugAssignment]:
        return self.mug_repo.list_for_user(session, user_id, skip, limit)
