# giveaway/models/order.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    One purchase transaction.

    The ship_* columns are a denormalised snapshot of the address used at
    checkout. Series codes for mug serials are derived from this snapshot,
    so it must never follow later edits of the live Address row.

    Payment sub-record:
      - payment_status: pending | completed | failed | refunded
      - merchant_transaction_id: our id, sent to the gateway
      - transaction_id: the gateway's id, set on confirmation
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Display number, ORD-<epoch ms>-<3 digits>",
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # Shipping snapshot
    ship_full_name: str
    ship_phone: str
    ship_address_line1: str
    ship_city: str
    ship_district: str | None = None
    ship_state: str = Field(index=True)
    ship_postal_code: str
    ship_country: str = Field(default="India")
    ship_landmark: str | None = None

    # Payment sub-record
    payment_method: str = Field(default="phonepe")
    payment_status: str = Field(
        default="pending",
        index=True,
    )
    transaction_id: str | None = None
    merchant_transaction_id: str | None = Field(
        default=None,
        index=True,
    )
    payment_amount: float
    currency: str = Field(default="INR")

    # pending | confirmed | processing | shipped | delivered | cancelled
    order_status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    total_amount: float = Field(description="Sum of line totals")
    shipping_charges: float = Field(default=0.0)
    final_amount: float = Field(description="total_amount + shipping_charges")

    notes: str | None = None
    tracking_number: str | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    mug_serials holds one serial per physical unit of a mug line. Current
    rows store a JSON list of strings; rows written by the old storefront
    hold a single comma-joined string. Read it through
    `giveaway.services.serial_allocator.normalize_serials`, never directly.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: str = Field(
        index=True,
        description="Catalog reference (owned by the storefront CMS)",
    )
    product_name: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )
    unit_price: float
    total_price: float

    is_mug: bool = Field(default=False)
    reference_code: str | None = Field(
        default=None,
        description="Free text from the buyer, e.g. a vehicle number",
    )
    series_code: str | None = Field(default=None, max_length=4, index=True)
    mug_serials: list[str] | str | None = Field(
        default=None,
        sa_column=Column(JSON(none_as_null=True), nullable=True),
    )


class OrderProfile(SQLModel, table=True):
    """
    Buyer profiles an order delivers units to, in checkout order.
    """

    __tablename__ = "order_profiles"

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        primary_key=True,
    )
    profile_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        primary_key=True,
    )
    position: int = Field(default=0, ge=0)
