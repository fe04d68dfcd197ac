import hashlib

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from giveaway.models.order import Order, OrderItem
from giveaway.models.serial import IssuedSerial
from giveaway.schemas.order import OrderCreate, OrderItemCreate, OrderStatusUpdate
from giveaway.services.order_service import generate_order_number
from giveaway.services.serial_allocator import SerialAllocationError


def mug_line(quantity=1, price=300.0, reference_code=None):
    return OrderItemCreate(
        product_id="mug-classic",
        product_name="Classic Mug",
        quantity=quantity,
        price=price,
        is_mug=True,
        reference_code=reference_code,
    )


def plain_line(quantity=1, price=200.0):
    return OrderItemCreate(
        product_id="card-1",
        product_name="Greeting Card",
        quantity=quantity,
        price=price,
    )


@pytest.fixture
def customer(make_user):
    return make_user()


def checkout(order_service, session, user, address, items, buyers=()):
    payload = OrderCreate(
        items=items,
        shipping_address_id=address.id,
        buyer_profile_ids=[b.id for b in buyers],
    )
    return order_service.create_order(session, user.id, payload)


def test_line_quantity_is_bounded():
    with pytest.raises(ValidationError):
        mug_line(quantity=101)
    assert mug_line(quantity=100).quantity == 100


def test_order_number_format():
    number = generate_order_number()
    prefix, millis, suffix = number.split("-")
    assert prefix == "ORD"
    assert millis.isdigit()
    assert len(suffix) == 3 and suffix.isdigit()


class TestCreateOrder:
    def test_mug_lines_get_serials(
        self, session, order_service, gateway, customer, make_address, make_buyer
    ):
        address = make_address(customer)
        buyer = make_buyer(customer)

        result = checkout(
            order_service,
            session,
            customer,
            address,
            [mug_line(quantity=2), plain_line()],
            buyers=[buyer],
        )

        order = result.order
        mug = next(i for i in order.items if i.is_mug)
        card = next(i for i in order.items if not i.is_mug)
        assert mug.series_code == "TN01"
        assert mug.mug_serials == ["TN01 0000001", "TN01 0000002"]
        assert card.mug_serials is None
        assert card.series_code is None
        assert order.buyer_profile_ids == [buyer.id]
        assert order.mug_unit_ids == []

        assert order.total_amount == 800.0
        assert order.shipping_charges == 50.0
        assert order.final_amount == 850.0
        assert order.ship_state == "Tamil Nadu"
        assert order.payment_status == "pending"

        assert result.payment_request is not None
        assert gateway.created[0]["amount_paise"] == 85000
        assert gateway.created[0]["mobile_number"] == "9876543210"
        stored = session.get(Order, order.id)
        assert stored.merchant_transaction_id == result.payment_request.merchant_transaction_id

    def test_free_shipping_above_threshold(
        self, session, order_service, customer, make_address
    ):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line(quantity=6)]
        )
        assert result.order.total_amount == 1200.0
        assert result.order.shipping_charges == 0.0

    def test_reference_code_picks_series(
        self, session, order_service, customer, make_address
    ):
        result = checkout(
            order_service,
            session,
            customer,
            make_address(customer),
            [mug_line(reference_code="mh12ab3456")],
        )
        item = result.order.items[0]
        assert item.series_code == "MH12"
        assert item.mug_serials == ["MH12 0000001"]

    def test_serials_continue_across_orders(
        self, session, order_service, customer, make_address
    ):
        address = make_address(customer)
        checkout(order_service, session, customer, address, [mug_line(quantity=2)])
        second = checkout(order_service, session, customer, address, [mug_line()])
        assert second.order.items[0].mug_serials == ["TN01 0000003"]

    def test_catch_all_alternates_per_order(
        self, session, order_service, customer, make_address
    ):
        address = make_address(customer, state="Others", district=None)

        first = checkout(
            order_service, session, customer, address, [mug_line(), mug_line()]
        )
        second = checkout(order_service, session, customer, address, [mug_line()])
        third = checkout(order_service, session, customer, address, [mug_line()])

        assert [i.series_code for i in first.order.items] == ["TN01", "TN01"]
        assert sorted(i.mug_serials[0] for i in first.order.items) == [
            "TN01 0000001",
            "TN01 0000002",
        ]
        assert second.order.items[0].series_code == "KL01"
        assert second.order.items[0].mug_serials == ["KL01 0000001"]
        assert third.order.items[0].mug_serials == ["TN01 0000003"]

    def test_allocation_failure_keeps_order(
        self, session, order_service, allocator, customer, make_address, monkeypatch
    ):
        def fail(*args, **kwargs):
            raise SerialAllocationError("history unreadable")

        monkeypatch.setattr(allocator, "allocate_serials", fail)

        result = checkout(
            order_service, session, customer, make_address(customer), [mug_line(quantity=3)]
        )

        item = result.order.items[0]
        assert item.series_code == "TN01"
        assert item.mug_serials is None
        assert session.get(Order, result.order.id) is not None
        stored = session.exec(select(OrderItem).where(OrderItem.order_id == result.order.id)).one()
        assert stored.mug_serials is None

    def test_registry_write_failure_keeps_order(
        self, session, order_service, allocator, customer, make_address, monkeypatch
    ):
        def disk_error(session, rows):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(allocator.serial_repo, "register", disk_error)

        result = checkout(
            order_service, session, customer, make_address(customer), [mug_line()]
        )

        stored = session.exec(
            select(OrderItem).where(OrderItem.order_id == result.order.id)
        ).one()
        assert stored.series_code == "TN01"
        assert stored.mug_serials is None
        assert session.exec(select(IssuedSerial)).all() == []

    def test_unknown_address(self, session, order_service, customer, make_user, make_address):
        someone_else = make_address(make_user())
        with pytest.raises(HTTPException) as exc:
            checkout(order_service, session, customer, someone_else, [plain_line()])
        assert exc.value.status_code == 404

    def test_foreign_buyer_profile_rejected(
        self, session, order_service, customer, make_user, make_address, make_buyer
    ):
        stranger_buyer = make_buyer(make_user())
        with pytest.raises(HTTPException) as exc:
            checkout(
                order_service,
                session,
                customer,
                make_address(customer),
                [mug_line()],
                buyers=[stranger_buyer],
            )
        assert exc.value.status_code == 400
        assert session.exec(select(Order)).all() == []

    def test_gateway_failure_keeps_order(
        self, session, order_service, gateway, customer, make_address
    ):
        gateway.fail_create = True
        result = checkout(
            order_service, session, customer, make_address(customer), [mug_line()]
        )
        assert result.payment_request is None
        assert result.order.items[0].mug_serials == ["TN01 0000001"]

        gateway.fail_create = False
        payment = order_service.create_payment_for_order(session, customer.id, result.order.id)
        assert payment.redirect_url.startswith("https://pay.example/")


class TestPaymentFlow:
    def test_viewing_order_confirms_and_assigns(
        self, session, order_service, gateway, customer, make_address, make_buyer
    ):
        buyers = [make_buyer(customer), make_buyer(customer)]
        result = checkout(
            order_service, session, customer, make_address(customer), [mug_line()], buyers
        )
        gateway.complete(result.payment_request.merchant_transaction_id)

        order = order_service.get_user_order(session, customer.id, result.order.id)

        assert order.payment_status == "completed"
        assert order.order_status == "confirmed"
        assert order.mug_unit_ids == [1, 2]

    def test_status_endpoint_polls(
        self, session, order_service, gateway, customer, make_address
    ):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line()]
        )
        gateway.complete(result.payment_request.merchant_transaction_id, "PP77")

        status = order_service.get_user_order_status(session, customer.id, result.order.id)

        assert status.payment_status == "completed"
        assert status.transaction_id == "PP77"

    def test_paid_order_cannot_be_paid_again(
        self, session, order_service, gateway, customer, make_address
    ):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line()]
        )
        gateway.complete(result.payment_request.merchant_transaction_id)
        order_service.get_user_order(session, customer.id, result.order.id)

        with pytest.raises(HTTPException) as exc:
            order_service.create_payment_for_order(session, customer.id, result.order.id)
        assert exc.value.status_code == 400

    def test_other_users_order_is_hidden(
        self, session, order_service, customer, make_user, make_address
    ):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line()]
        )
        with pytest.raises(HTTPException) as exc:
            order_service.get_user_order(session, make_user().id, result.order.id)
        assert exc.value.status_code == 404

    def test_webhook_confirms_once(
        self, session, order_service, customer, make_address, make_buyer
    ):
        result = checkout(
            order_service,
            session,
            customer,
            make_address(customer),
            [mug_line()],
            [make_buyer(customer)],
        )
        body = {
            "event": "checkout.order.completed",
            "payload": {
                "merchantOrderId": result.payment_request.merchant_transaction_id,
                "state": "COMPLETED",
                "paymentDetails": [{"state": "COMPLETED", "transactionId": "T1"}],
            },
        }

        assert order_service.process_payment_webhook(session, body, None).success
        assert order_service.process_payment_webhook(session, body, None).success

        order = order_service.get_order_admin(session, result.order.id)
        assert order.payment_status == "completed"
        assert order.mug_unit_ids == [1]

    def test_webhook_credentials(self, session, order_service, settings):
        order_service.settings = settings.model_copy(
            update={"PHONEPE_WEBHOOK_USERNAME": "hook", "PHONEPE_WEBHOOK_PASSWORD": "secret"}
        )
        body = {"payload": {"merchantOrderId": "TXN_x", "state": "COMPLETED"}}

        with pytest.raises(HTTPException) as exc:
            order_service.process_payment_webhook(session, body, "wrong")
        assert exc.value.status_code == 401

        digest = hashlib.sha256(b"hook:secret").hexdigest()
        assert order_service.process_payment_webhook(session, body, digest).success

    def test_malformed_webhook(self, session, order_service):
        with pytest.raises(HTTPException) as exc:
            order_service.process_payment_webhook(session, {"nothing": 1}, None)
        assert exc.value.status_code == 400


class TestListingAndAdmin:
    def test_list_user_orders_paginates(
        self, session, order_service, customer, make_address
    ):
        address = make_address(customer)
        for _ in range(3):
            checkout(order_service, session, customer, address, [plain_line()])

        page = order_service.list_user_orders(session, customer.id, page=2, limit=2)

        assert page.total == 3
        assert page.total_pages == 2
        assert page.current_page == 2
        assert page.count == 1

    def test_status_moves_forward(self, session, order_service, customer, make_address):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line()]
        )
        order_id = result.order.id

        order = order_service.update_status(
            session, order_id, OrderStatusUpdate(order_status="confirmed")
        )
        assert order.order_status == "confirmed"

        order = order_service.update_status(
            session,
            order_id,
            OrderStatusUpdate(order_status="shipped", tracking_number="AWB123"),
        )
        assert order.tracking_number == "AWB123"

        order = order_service.update_status(
            session, order_id, OrderStatusUpdate(order_status="delivered")
        )
        assert order.delivered_at is not None

    @pytest.mark.parametrize(
        "path, target",
        [
            (["confirmed"], "pending"),
            (["confirmed", "shipped"], "cancelled"),
            (["cancelled"], "confirmed"),
            (["confirmed", "shipped", "delivered"], "processing"),
        ],
    )
    def test_invalid_transitions(
        self, session, order_service, customer, make_address, path, target
    ):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line()]
        )
        for step in path:
            order_service.update_status(
                session, result.order.id, OrderStatusUpdate(order_status=step)
            )

        with pytest.raises(HTTPException) as exc:
            order_service.update_status(
                session, result.order.id, OrderStatusUpdate(order_status=target)
            )
        assert exc.value.status_code == 400

    def test_cancel_sets_timestamp(self, session, order_service, customer, make_address):
        result = checkout(
            order_service, session, customer, make_address(customer), [plain_line()]
        )
        order = order_service.update_status(
            session, result.order.id, OrderStatusUpdate(order_status="cancelled")
        )
        assert order.cancelled_at is not None
