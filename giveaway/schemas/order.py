# giveaway/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

PaymentMethod = Literal["phonepe"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]
OrderStatus = Literal[
    "pending", "confirmed", "processing", "shipped", "delivered", "cancelled"
]


class OrderItemCreate(SQLModel):
    """
    One line of the checkout payload.

    Mug lines (is_mug=True) get one serial per unit. The optional
    reference_code (e.g. a vehicle number "MH12AB3456") picks the serial
    series when it starts with two letters and two digits.
    """

    model_config = ConfigDict(extra="forbid")

    product_id: str = Field(min_length=1, max_length=64)
    product_name: str = Field(min_length=1, max_length=200)
    quantity: int = Field(ge=1, le=100)
    price: float = Field(gt=0)
    is_mug: bool = False
    reference_code: str | None = Field(default=None, max_length=32)

    @field_validator("product_id", "product_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("reference_code")
    @classmethod
    def normalize_reference(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().upper()
        return v or None


class OrderCreate(SQLModel):
    """
    Checkout payload.

    User provides:
      - items
      - shipping_address_id (one of the user's saved addresses)
      - payment_method
      - buyer_profile_ids (the buyer profiles receiving mug units)

    Backend derives:
      - user_id from token
      - shipping snapshot from the address
      - totals, shipping charges, order number
      - mug serials per mug line
    """

    model_config = ConfigDict(extra="forbid")

    items: list[OrderItemCreate] = Field(min_length=1)
    shipping_address_id: uuid.UUID
    payment_method: PaymentMethod = "phonepe"
    buyer_profile_ids: list[uuid.UUID] = Field(default_factory=list)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("buyer_profile_ids")
    @classmethod
    def unique_profiles(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        if len(set(v)) != len(v):
            raise ValueError("buyer_profile_ids must not repeat")
        return v

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID

    ship_full_name: str
    ship_phone: str
    ship_address_line1: str
    ship_city: str
    ship_district: str | None
    ship_state: str
    ship_postal_code: str
    ship_country: str
    ship_landmark: str | None

    payment_method: PaymentMethod
    payment_status: PaymentStatus
    transaction_id: str | None
    payment_amount: float
    currency: str

    order_status: OrderStatus
    total_amount: float
    shipping_charges: float
    final_amount: float

    notes: str | None
    tracking_number: str | None
    delivered_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.

    mug_serials is always a list here, whatever shape the row stores.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    is_mug: bool
    reference_code: str | None
    series_code: str | None
    mug_serials: list[str] | None


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items, buyer profiles and assigned mug units.
    """

    items: list[OrderItemRead]
    buyer_profile_ids: list[uuid.UUID]
    mug_unit_ids: list[int]


class OrderListRead(SQLModel):
    count: int
    total: int
    current_page: int
    total_pages: int
    data: list[OrderRead]


class PaymentRequestRead(SQLModel):
    merchant_transaction_id: str
    redirect_url: str
    gateway_order_id: str | None = None
    state: str | None = None
    expire_at: int | None = None


class OrderCheckoutRead(SQLModel):
    """
    Checkout response. payment_request is None when the gateway could not
    be reached; the order exists and payment can be retried.
    """

    order: OrderWithItemsRead
    payment_request: PaymentRequestRead | None = None


class OrderPaymentStatusRead(SQLModel):
    order_id: uuid.UUID
    order_number: str
    payment_status: PaymentStatus
    order_status: OrderStatus
    transaction_id: str | None


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    order_status: OrderStatus
    tracking_number: str | None = Field(default=None, max_length=64)
    notes: str | None = Field(default=None, max_length=500)


class WebhookAck(SQLModel):
    success: bool
    message: str
