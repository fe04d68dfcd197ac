"""
Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database (StaticPool keeps the
single connection alive), with savepoint support enabled the same way
the application enables it for SQLite.
"""
import os

# Settings are read at import time by giveaway.database / giveaway.core.auth
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid  # noqa: E402
from collections.abc import Iterator  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from giveaway.core.config import Settings  # noqa: E402
from giveaway.core.phonepe_client import (  # noqa: E402
    STATE_COMPLETED,
    STATE_PENDING,
    PaymentGatewayError,
    PaymentSignal,
)
from giveaway.database import enable_sqlite_savepoints  # noqa: E402
from giveaway.models.address import Address  # noqa: E402
from giveaway.models.mug import MugAssignment  # noqa: E402, F401
from giveaway.models.order import Order, OrderItem, OrderProfile  # noqa: E402
from giveaway.models.profile import Profile  # noqa: E402
from giveaway.models.serial import IssuedSerial, SequenceCounter  # noqa: E402, F401
from giveaway.models.user import User  # noqa: E402
from giveaway.repositories.address_repo import AddressRepository  # noqa: E402
from giveaway.repositories.mug_repo import MugAssignmentRepository  # noqa: E402
from giveaway.repositories.order_repo import OrderRepository  # noqa: E402
from giveaway.repositories.profile_repo import ProfileRepository  # noqa: E402
from giveaway.repositories.sequence_repo import SequenceCounterRepository  # noqa: E402
from giveaway.repositories.serial_repo import SerialRepository  # noqa: E402
from giveaway.services.mug_service import MugService  # noqa: E402
from giveaway.services.order_service import OrderService  # noqa: E402
from giveaway.services.payment_reconciler import PaymentReconciler  # noqa: E402
from giveaway.services.serial_allocator import SerialAllocator  # noqa: E402
from giveaway.services.series_code import SeriesCodeResolver  # noqa: E402


class FakeGateway:
    """Stands in for PhonePeClient; records calls, returns canned answers."""

    def __init__(self):
        self.status_by_txn: dict[str, PaymentSignal] = {}
        self.created: list[dict] = []
        self.status_calls: list[str] = []
        self.fail_create = False
        self.fail_status = False

    def create_payment(
        self,
        merchant_order_id,
        amount_paise,
        redirect_url,
        expire_after_seconds=1200,
        mobile_number=None,
    ):
        if self.fail_create:
            raise PaymentGatewayError("gateway down")
        self.created.append(
            {
                "merchant_order_id": merchant_order_id,
                "amount_paise": amount_paise,
                "redirect_url": redirect_url,
                "mobile_number": mobile_number,
            }
        )
        return {
            "redirect_url": f"https://pay.example/{merchant_order_id}",
            "gateway_order_id": f"OMO{len(self.created)}",
            "state": STATE_PENDING,
            "expire_at": 1700000000000,
        }

    def check_status(self, merchant_order_id):
        self.status_calls.append(merchant_order_id)
        if self.fail_status:
            raise PaymentGatewayError("gateway down")
        return self.status_by_txn.get(
            merchant_order_id,
            PaymentSignal(merchant_order_id, STATE_PENDING),
        )

    def complete(self, merchant_order_id, transaction_id="T123"):
        self.status_by_txn[merchant_order_id] = PaymentSignal(
            merchant_order_id, STATE_COMPLETED, transaction_id
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-secret",
        _env_file=None,
    )


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session(engine) -> Iterator[Session]:
    with Session(engine) as s:
        yield s


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


# ---- repositories / services ----


@pytest.fixture
def order_repo() -> OrderRepository:
    return OrderRepository()


@pytest.fixture
def mug_repo() -> MugAssignmentRepository:
    return MugAssignmentRepository()


@pytest.fixture
def counter_repo() -> SequenceCounterRepository:
    return SequenceCounterRepository()


@pytest.fixture
def allocator(settings, counter_repo) -> SerialAllocator:
    return SerialAllocator(SerialRepository(), counter_repo, settings)


@pytest.fixture
def resolver(settings, order_repo) -> SeriesCodeResolver:
    return SeriesCodeResolver(order_repo, settings)


@pytest.fixture
def mug_service(settings, mug_repo, order_repo, counter_repo) -> MugService:
    return MugService(mug_repo, order_repo, counter_repo, settings)


@pytest.fixture
def reconciler(order_repo, mug_service, gateway) -> PaymentReconciler:
    return PaymentReconciler(order_repo, mug_service, gateway)


@pytest.fixture
def order_service(
    settings, order_repo, mug_repo, resolver, allocator, reconciler
) -> OrderService:
    return OrderService(
        order_repo,
        AddressRepository(),
        ProfileRepository(),
        mug_repo,
        resolver,
        allocator,
        reconciler,
        settings,
    )


# ---- data factories ----


@pytest.fixture
def make_user(session):
    def _make(email: str | None = None, role: str = "user") -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            name="Test User",
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def make_buyer(session):
    def _make(user: User, name: str = "Buyer") -> Profile:
        profile = Profile(user_id=user.id, profile_type="buyer", name=name)
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    return _make


@pytest.fixture
def make_address(session):
    def _make(
        user: User,
        state: str = "Tamil Nadu",
        district: str | None = "Chennai",
        is_default: bool = True,
    ) -> Address:
        address = Address(
            user_id=user.id,
            is_default=is_default,
            full_name="Test User",
            phone="9876543210",
            address_line1="1 Main Road",
            city="Chennai",
            district=district,
            state=state,
            postal_code="600001",
        )
        session.add(address)
        session.commit()
        session.refresh(address)
        return address

    return _make


@pytest.fixture
def make_order(session):
    """
    Insert a pending order directly, optionally with buyer profiles and
    stored mug serials on one mug line.
    """

    def _make(
        user: User,
        profiles: list[Profile] | None = None,
        ship_state: str = "Tamil Nadu",
        mug_serials=None,
        merchant_transaction_id: str | None = None,
    ) -> Order:
        order = Order(
            order_number=f"ORD-{uuid.uuid4().hex[:10]}",
            user_id=user.id,
            ship_full_name="Test User",
            ship_phone="9876543210",
            ship_address_line1="1 Main Road",
            ship_city="Chennai",
            ship_district="Chennai",
            ship_state=ship_state,
            ship_postal_code="600001",
            ship_country="India",
            payment_amount=499.0,
            total_amount=449.0,
            shipping_charges=50.0,
            final_amount=499.0,
            merchant_transaction_id=merchant_transaction_id
            or f"TXN_{uuid.uuid4().hex}",
        )
        session.add(order)
        session.flush()

        if mug_serials is not None:
            session.add(
                OrderItem(
                    order_id=order.id,
                    product_id="mug-1",
                    product_name="Mug",
                    quantity=1,
                    unit_price=449.0,
                    total_price=449.0,
                    is_mug=True,
                    mug_serials=mug_serials,
                )
            )

        for pos, profile in enumerate(profiles or []):
            session.add(OrderProfile(order_id=order.id, profile_id=profile.id, position=pos))

        session.commit()
        session.refresh(order)
        return order

    return _make
