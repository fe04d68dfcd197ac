# giveaway/routers/orders.py
import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Header
from sqlmodel import Session

from giveaway.core.auth import require_user, require_admin
from giveaway.core.phonepe_client import PhonePeClient
from giveaway.database import get_session
from giveaway.models.user import User
from giveaway.repositories.address_repo import AddressRepository
from giveaway.repositories.mug_repo import MugAssignmentRepository
from giveaway.repositories.order_repo import OrderRepository
from giveaway.repositories.profile_repo import ProfileRepository
from giveaway.repositories.sequence_repo import SequenceCounterRepository
from giveaway.repositories.serial_repo import SerialRepository
from giveaway.schemas.order import (
    OrderCheckoutRead,
    OrderCreate,
    OrderListRead,
    OrderPaymentStatusRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
    PaymentRequestRead,
    WebhookAck,
)
from giveaway.services.mug_service import MugService
from giveaway.services.order_service import OrderService
from giveaway.services.payment_reconciler import PaymentReconciler
from giveaway.services.serial_allocator import SerialAllocator
from giveaway.services.series_code import SeriesCodeResolver

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
address_repo = AddressRepository()
profile_repo = ProfileRepository()
mug_repo = MugAssignmentRepository()
counter_repo = SequenceCounterRepository()

mug_service = MugService(mug_repo, order_repo, counter_repo)
reconciler = PaymentReconciler(order_repo, mug_service, PhonePeClient())
service = OrderService(
    order_repo,
    address_repo,
    profile_repo,
    mug_repo,
    SeriesCodeResolver(order_repo),
    SerialAllocator(SerialRepository(), counter_repo),
    reconciler,
)


# -------- User-facing endpoints --------


@router.post(
    "",
    response_model=OrderCheckoutRead,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Create an order and start PhonePe checkout.

    Mug lines get their serials here. `payment_request` is null when the
    gateway is unavailable; retry with POST /orders/me/{order_id}/payment.

    Auth:
      - Only role='user' (customer) can order.
    """
    return service.create_order(session, current_user.id, payload)


@router.get(
    "/me",
    response_model=OrderListRead,
)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    page: int = 1,
    limit: int = 10,
    order_status: str | None = None,
):
    """
    List the authenticated user's orders (without items), newest first.
    """
    return service.list_user_orders(session, current_user.id, page, limit, order_status)


@router.get(
    "/me/{order_id}",
    response_model=OrderWithItemsRead,
)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Get a single order (with items, serials and mug units) belonging to
    the current user.
    """
    return service.get_user_order(session, current_user.id, order_id)


@router.get(
    "/me/{order_id}/status",
    response_model=OrderPaymentStatusRead,
)
def get_my_order_status(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Payment status for the payment-return page. Checks with PhonePe while
    the payment is still pending.
    """
    return service.get_user_order_status(session, current_user.id, order_id)


@router.post(
    "/me/{order_id}/payment",
    response_model=PaymentRequestRead,
)
def create_my_order_payment(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
):
    """
    Start a new PhonePe checkout for an unpaid order.
    """
    return service.create_payment_for_order(session, current_user.id, order_id)


@router.post(
    "/payment/phonepe/callback",
    response_model=WebhookAck,
)
def phonepe_callback(
    body: dict[str, Any] = Body(...),
    authorization: str | None = Header(default=None),
    session: Session = Depends(get_session),
):
    """
    PhonePe server-to-server webhook.

    No user auth; the Authorization header is checked against the
    configured webhook credentials instead.
    """
    return service.process_payment_webhook(session, body, authorization)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    """
    List all orders (admin only).
    """
    return service.list_all_orders(session, skip, limit)


@router.get(
    "/{order_id}",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get any order with items (admin only).
    """
    return service.get_order_admin(session, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update order status (admin only). Forward moves only:

      pending -> confirmed -> processing -> shipped -> delivered

      pending / confirmed / processing -> cancelled

    """
    return service.update_status(session, order_id, payload)
