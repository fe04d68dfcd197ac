# giveaway/services/order_service.py
import logging
import math
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from sqlmodel import Session

from giveaway.core.config import Settings, get_settings
from giveaway.core.phonepe_client import (
    PaymentGatewayError,
    parse_webhook,
    verify_webhook_authorization,
)
from giveaway.models.order import Order, OrderItem
from giveaway.repositories.address_repo import AddressRepository
from giveaway.repositories.mug_repo import MugAssignmentRepository
from giveaway.repositories.order_repo import OrderRepository
from giveaway.repositories.profile_repo import ProfileRepository
from giveaway.schemas.order import (
    OrderCheckoutRead,
    OrderCreate,
    OrderItemRead,
    OrderListRead,
    OrderPaymentStatusRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
    PaymentRequestRead,
    WebhookAck,
)
from giveaway.services.payment_reconciler import PaymentReconciler
from giveaway.services.serial_allocator import (
    SerialAllocationError,
    SerialAllocator,
    normalize_serials,
)
from giveaway.services.series_code import SeriesCodeResolver

logger = logging.getLogger(__name__)

# Linear fulfilment chain; cancellation is allowed until the parcel ships.
STATUS_CHAIN = ["pending", "confirmed", "processing", "shipped", "delivered"]
CANCELLABLE = {"pending", "confirmed", "processing"}


def generate_order_number() -> str:
    millis = int(time.time() * 1000)
    return f"ORD-{millis}-{random.randint(0, 999):03d}"


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create order from the checkout payload and a saved address
      - Issue mug serials for mug lines before the order is stored
      - Start PhonePe checkout
      - Poll pending payments when orders are viewed
      - Enforce forward-only status transitions (admin)
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        address_repo: AddressRepository,
        profile_repo: ProfileRepository,
        mug_repo: MugAssignmentRepository,
        series_resolver: SeriesCodeResolver,
        serial_allocator: SerialAllocator,
        reconciler: PaymentReconciler,
        settings: Settings | None = None,
    ):
        self.order_repo = order_repo
        self.address_repo = address_repo
        self.profile_repo = profile_repo
        self.mug_repo = mug_repo
        self.series_resolver = series_resolver
        self.serial_allocator = serial_allocator
        self.reconciler = reconciler
        self.settings = settings or get_settings()

    # -------- User-facing operations --------

    def create_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: OrderCreate,
    ) -> OrderCheckoutRead:
        """
        Create an order for the current user.

        Steps:
          1. Load the shipping address (must belong to the user).
          2. Validate buyer profiles (must be the user's buyer profiles).
          3. Compute totals and shipping charges.
          4. For each mug line: resolve series code, allocate serials.
             A failed allocation leaves that line without serials.
          5. Insert order, items and buyer-profile links; commit.
          6. Start PhonePe checkout (failure keeps the order).
        """
        # 1) Shipping address
        address = self.address_repo.get_for_user(
            session, user_id, payload.shipping_address_id
        )
        if not address:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Shipping address not found",
            )

        # 2) Buyer profiles
        if payload.buyer_profile_ids:
            found = self.profile_repo.list_buyers_by_ids(
                session, user_id, payload.buyer_profile_ids
            )
            found_ids = {p.id for p in found}
            missing = [str(pid) for pid in payload.buyer_profile_ids if pid not in found_ids]
            if missing:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail={"message": "Unknown buyer profiles", "profile_ids": missing},
                )

        # 3) Totals
        total_amount = 0.0
        for line in payload.items:
            total_amount += line.quantity * line.price

        shipping_charges = (
            0.0
            if total_amount > self.settings.FREE_SHIPPING_THRESHOLD
            else self.settings.SHIPPING_CHARGE
        )
        final_amount = total_amount + shipping_charges

        order = Order(
            order_number=generate_order_number(),
            user_id=user_id,
            ship_full_name=address.full_name,
            ship_phone=address.phone,
            ship_address_line1=address.address_line1,
            ship_city=address.city,
            ship_district=address.district,
            ship_state=address.state,
            ship_postal_code=address.postal_code,
            ship_country=address.country,
            ship_landmark=address.landmark,
            payment_method=payload.payment_method,
            payment_status="pending",
            payment_amount=final_amount,
            order_status="pending",
            total_amount=total_amount,
            shipping_charges=shipping_charges,
            final_amount=final_amount,
            notes=payload.notes,
        )

        # 4) Items + serials. The order is not in the session yet, so the
        #    catch-all count below only sees previously persisted orders.
        order_items: list[OrderItem] = []
        for line in payload.items:
            item = OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.price,
                total_price=line.quantity * line.price,
                is_mug=line.is_mug,
                reference_code=line.reference_code,
            )
            if line.is_mug:
                self._issue_serials(session, item, order)
            order_items.append(item)

        # 5) Persist
        order = self.order_repo.create_order(session, order)
        order_items = self.order_repo.create_items(session, order_items)
        if payload.buyer_profile_ids:
            self.order_repo.add_buyer_profiles(session, order.id, payload.buyer_profile_ids)
        session.commit()
        session.refresh(order)
        logger.info(f"Order {order.order_number} created for user {user_id}")

        # 6) Checkout
        payment_request = None
        if order.payment_method == "phonepe":
            payment_request = self._start_checkout(session, order)

        return OrderCheckoutRead(
            order=self._build_order_with_items_dto(session, order),
            payment_request=payment_request,
        )

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 10,
        order_status: str | None = None,
    ) -> OrderListRead:
        """
        Paginated order list. Pending PhonePe orders on the page are polled
        first, so a payment whose webhook was lost still gets confirmed.
        """
        page = max(page, 1)
        limit = max(min(limit, 100), 1)
        orders = self.order_repo.list_for_user(
            session, user_id, (page - 1) * limit, limit, order_status
        )
        orders = self.reconciler.poll_many(session, orders)
        total = self.order_repo.count_for_user(session, user_id, order_status)

        return OrderListRead(
            count=len(orders),
            total=total,
            current_page=page,
            total_pages=math.ceil(total / limit) if total else 0,
            data=[OrderRead.model_validate(o) for o in orders],
        )

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get a single order for the user, including items.

        - 404 if order not found or does not belong to this user.
        """
        order = self._get_user_order_or_404(session, user_id, order_id)
        order = self.reconciler.poll_payment(session, order)
        return self._build_order_with_items_dto(session, order)

    def get_user_order_status(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderPaymentStatusRead:
        order = self._get_user_order_or_404(session, user_id, order_id)
        order = self.reconciler.poll_payment(session, order)
        return OrderPaymentStatusRead(
            order_id=order.id,
            order_number=order.order_number,
            payment_status=order.payment_status,
            order_status=order.order_status,
            transaction_id=order.transaction_id,
        )

    def create_payment_for_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> PaymentRequestRead:
        """
        (Re)start PhonePe checkout for an unpaid order.

        - 400 if already paid or cancelled
        - 502 if the gateway rejects the request
        """
        order = self._get_user_order_or_404(session, user_id, order_id)
        if order.payment_status == "completed":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order is already paid",
            )
        if order.order_status == "cancelled":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Order is cancelled",
            )

        if order.payment_status == "failed":
            order.payment_status = "pending"

        payment_request = self._start_checkout(session, order)
        if payment_request is None:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Payment gateway unavailable, please retry",
            )
        return payment_request

    def process_payment_webhook(
        self,
        session: Session,
        body: dict[str, Any],
        authorization: str | None,
    ) -> WebhookAck:
        """
        Gateway callback.

        - 401 if webhook credentials are configured and do not match
        - 400 if the body is not a recognised webhook
        - otherwise always acknowledged, whatever happens to mug assignment
        """
        if not verify_webhook_authorization(
            authorization,
            self.settings.PHONEPE_WEBHOOK_USERNAME,
            self.settings.PHONEPE_WEBHOOK_PASSWORD,
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook credentials",
            )

        try:
            signal = parse_webhook(body)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed payment callback",
            )

        self.reconciler.handle_webhook(session, signal)
        return WebhookAck(success=True, message="Payment callback processed")

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        List all orders (admin only).
        """
        orders = self.order_repo.list_all(session, skip, limit)
        return orders  # type: ignore[return-value]

    def get_order_admin(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        Get any order with items (admin only).
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return self._build_order_with_items_dto(session, order)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update. Forward moves along

          pending -> confirmed -> processing -> shipped -> delivered

        are allowed (steps may be skipped); cancelled is reachable from
        pending, confirmed and processing. Anything else raises 400.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )

        current = order.order_status
        new = payload.order_status

        if current != new and not self._is_allowed_transition(current, new):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition: {current} -> {new}",
            )

        now = datetime.now(timezone.utc)
        order.order_status = new
        if payload.tracking_number:
            order.tracking_number = payload.tracking_number
        if payload.notes:
            order.notes = payload.notes
        if new == "delivered" and current != "delivered":
            order.delivered_at = now
        if new == "cancelled" and current != "cancelled":
            order.cancelled_at = now
        order.updated_at = now

        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        return order  # type: ignore[return-value]

    # -------- Helpers --------

    @staticmethod
    def _is_allowed_transition(current: str, new: str) -> bool:
        if new == "cancelled":
            return current in CANCELLABLE
        if current not in STATUS_CHAIN or new not in STATUS_CHAIN:
            return False
        return STATUS_CHAIN.index(new) > STATUS_CHAIN.index(current)

    def _issue_serials(self, session: Session, item: OrderItem, order: Order) -> None:
        series_code = self.series_resolver.resolve_series_code(session, item, order)
        item.series_code = series_code
        try:
            item.mug_serials = self.serial_allocator.allocate_serials(
                session, series_code, item.quantity
            )
        except (SerialAllocationError, ValueError):
            logger.warning(
                f"No serials for '{item.product_name}' in order {order.order_number}",
                exc_info=True,
            )
            item.mug_serials = None

    def _start_checkout(self, session: Session, order: Order) -> PaymentRequestRead | None:
        """
        Create a PhonePe checkout for the order and remember our
        merchant transaction id on it. Returns None on gateway failure.
        """
        merchant_transaction_id = f"TXN_{order.id.hex}_{int(time.time() * 1000)}"
        try:
            checkout = self.reconciler.gateway.create_payment(
                merchant_transaction_id,
                amount_paise=int(round(order.final_amount * 100)),
                redirect_url=f"{self.settings.FRONTEND_URL}/payment/callback?orderId={order.id}",
                mobile_number=order.ship_phone,
            )
        except PaymentGatewayError:
            logger.warning(
                f"Checkout could not be started for order {order.order_number}",
                exc_info=True,
            )
            return None

        order.merchant_transaction_id = merchant_transaction_id
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)

        return PaymentRequestRead(
            merchant_transaction_id=merchant_transaction_id,
            redirect_url=checkout["redirect_url"],
            gateway_order_id=checkout.get("gateway_order_id"),
            state=checkout.get("state"),
            expire_at=checkout.get("expire_at"),
        )

    def _get_user_order_or_404(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _build_order_with_items_dto(
        self,
        session: Session,
        order: Order,
    ) -> OrderWithItemsRead:
        """
        Compose OrderWithItemsRead from ORM rows. Stored serials are
        normalised to a list here.
        """
        items = self.order_repo.list_items_for_order(session, order.id)
        item_dtos: list[OrderItemRead] = []
        for it in items:
            serials = normalize_serials(it.mug_serials)
            item_dtos.append(
                OrderItemRead(
                    id=it.id,
                    order_id=it.order_id,
                    product_id=it.product_id,
                    product_name=it.product_name,
                    quantity=it.quantity,
                    unit_price=it.unit_price,
                    total_price=it.total_price,
                    is_mug=it.is_mug,
                    reference_code=it.reference_code,
                    series_code=it.series_code,
                    mug_serials=serials or None,
                )
            )

        profile_ids = self.order_repo.list_buyer_profile_ids(session, order.id)
        unit_ids = [m.unit_id for m in self.mug_repo.list_for_order(session, order.id)]

        return OrderWithItemsRead(
            **OrderRead.model_validate(order).model_dump(),
            items=item_dtos,
            buyer_profile_ids=profile_ids,
            mug_unit_ids=unit_ids,
        )
