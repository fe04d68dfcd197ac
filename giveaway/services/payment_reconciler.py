# giveaway/services/payment_reconciler.py
import logging

from sqlmodel import Session

from giveaway.core.phonepe_client import PaymentGatewayError, PaymentSignal, PhonePeClient
from giveaway.models.order import Order
from giveaway.repositories.order_repo import OrderRepository
from giveaway.services.mug_service import MugService

logger = logging.getLogger(__name__)


class PaymentReconciler:
    """
    Moves an order's payment from pending to completed, once.

    Entry points:
      - handle_webhook : gateway callback
      - poll_payment   : order views that find a still-pending PhonePe order
      - poll_many      : order list view

    All of them end in reconcile_payment, which is the only place that
    confirms an order and triggers mug unit assignment.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        mug_service: MugService,
        gateway: PhonePeClient,
    ):
        self.order_repo = order_repo
        self.mug_service = mug_service
        self.gateway = gateway

    def reconcile_payment(
        self,
        session: Session,
        order: Order,
        signal: PaymentSignal,
    ) -> Order:
        """
        Apply a gateway signal to an order.

        - already completed: nothing happens
        - success: payment completed, order confirmed, committed, then
          mug units assigned (assignment failures do not undo this)
        - failure: payment marked failed
        - pending: nothing happens
        """
        if order.payment_status == "completed":
            return order

        if signal.success:
            transitioned = self.order_repo.mark_payment_completed(
                session, order.id, signal.transaction_id
            )
            session.commit()
            session.refresh(order)

            if not transitioned:
                logger.info(
                    f"Payment for order {order.order_number} was already confirmed"
                )
                return order

            logger.info(
                f"Payment confirmed for order {order.order_number} "
                f"(transaction {order.transaction_id})"
            )
            self.mug_service.assign_mug_units(session, order)
            session.refresh(order)
            return order

        if signal.failed and order.payment_status == "pending":
            order.payment_status = "failed"
            self.order_repo.update_order(session, order)
            session.commit()
            session.refresh(order)
            logger.info(f"Payment failed for order {order.order_number}")

        return order

    def poll_payment(self, session: Session, order: Order) -> Order:
        """
        Ask the gateway about a pending PhonePe order and reconcile.

        Gateway errors are logged; the order is returned unchanged.
        """
        if (
            order.payment_method != "phonepe"
            or order.payment_status != "pending"
            or not order.merchant_transaction_id
        ):
            return order

        try:
            signal = self.gateway.check_status(order.merchant_transaction_id)
        except PaymentGatewayError as exc:
            logger.warning(f"Status poll failed for order {order.order_number}: {exc}")
            return order

        return self.reconcile_payment(session, order, signal)

    def poll_many(self, session: Session, orders: list[Order]) -> list[Order]:
        return [self.poll_payment(session, order) for order in orders]

    def handle_webhook(self, session: Session, signal: PaymentSignal) -> Order | None:
        """
        Reconcile the order a webhook refers to.

        Returns:
            The order, or None when the webhook names no known order.
        """
        if not signal.merchant_transaction_id:
            logger.warning("Payment webhook without merchant transaction id")
            return None

        order = self.order_repo.get_by_merchant_transaction_id(
            session, signal.merchant_transaction_id
        )
        if order is None:
            logger.warning(
                f"Payment webhook for unknown transaction {signal.merchant_transaction_id}"
            )
            return None

        return self.reconcile_payment(session, order, signal)
