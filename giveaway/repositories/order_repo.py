# giveaway/repositories/order_repo.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import case, func, update
from sqlmodel import Session, select

from giveaway.models.order import Order, OrderItem, OrderProfile


class OrderRepository:
    """
    Data access layer for orders, order_items and order_profiles.

    NOTE:
      - No commits here; order creation is a multi-step transaction.
        The service is responsible for calling session.commit().
    """

    # ---- Orders ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
        order_status: str | None = None,
    ) -> list[Order]:
        stmt = select(Order).where(Order.user_id == user_id)
        if order_status:
            stmt = stmt.where(Order.order_status == order_status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def count_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_status: str | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(Order).where(Order.user_id == user_id)
        if order_status:
            stmt = stmt.where(Order.order_status == order_status)
        return int(session.exec(stmt).one() or 0)

    def list_all(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return list(session.exec(stmt).all())

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id)

    def get_by_merchant_transaction_id(
        self,
        session: Session,
        merchant_transaction_id: str,
    ) -> Order | None:
        stmt = select(Order).where(
            Order.merchant_transaction_id == merchant_transaction_id
        )
        return session.exec(stmt).first()

    def count_by_ship_state(self, session: Session, state: str) -> int:
        """
        Number of persisted orders shipped to `state` (case-insensitive).
        """
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(func.lower(func.trim(Order.ship_state)) == state.strip().lower())
        )
        return int(session.exec(stmt).one() or 0)

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    def update_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def mark_payment_completed(
        self,
        session: Session,
        order_id: uuid.UUID,
        transaction_id: str | None,
    ) -> bool:
        """
        Flip payment_status to "completed" unless it already is.

        Done as a single conditional UPDATE so that two confirmation signals
        racing on the same order cannot both win. A pending order_status
        moves to "confirmed" in the same statement.

        Returns:
            True if this call performed the transition.
        """
        values: dict = {
            "payment_status": "completed",
            "order_status": case(
                (Order.order_status == "pending", "confirmed"),
                else_=Order.order_status,
            ),
            "updated_at": datetime.now(timezone.utc),
        }
        if transaction_id:
            values["transaction_id"] = transaction_id

        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.payment_status.in_(("pending", "failed")),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        session.flush()
        return result.rowcount == 1

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id)
        return list(session.exec(stmt).all())

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items

    # ---- Buyer profiles ----

    def add_buyer_profiles(
        self,
        session: Session,
        order_id: uuid.UUID,
        profile_ids: list[uuid.UUID],
    ) -> None:
        session.add_all(
            [
                OrderProfile(order_id=order_id, profile_id=pid, position=pos)
                for pos, pid in enumerate(profile_ids)
            ]
        )
        session.flush()

    def count_orders_for_profile(self, session: Session, profile_id: uuid.UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(OrderProfile)
            .where(OrderProfile.profile_id == profile_id)
        )
        return int(session.exec(stmt).one() or 0)

    def list_buyer_profile_ids(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[uuid.UUID]:
        stmt = (
            select(OrderProfile.profile_id)
            .where(OrderProfile.order_id == order_id)
            .order_by(OrderProfile.position)
        )
        return list(session.exec(stmt).all())
