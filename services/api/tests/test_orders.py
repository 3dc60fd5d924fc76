from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from packages.shared.schemas.events import EventTypeV1
from services.api.app.models.cart import ProductSnapshot
from services.api.app.models.order import Address, CustomerInfo, OrderStatus, PaymentStatus
from services.api.app.models.payment import PaymentMethodKind
from services.api.app.services.cart import CartStore
from services.api.app.services.errors import (
    EmptyCartError,
    IncompleteAddressError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from services.api.app.services.events import EventBus, RecordingSubscriber
from services.api.app.services.orders import OrderEngine

NOW = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

ADDRESS = Address(street="12 MG Road", city="Bengaluru", state="KA", pincode="560001")
CUSTOMER = CustomerInfo(name="Asha", email="asha@example.com", phone="9999999999")


class _Clock:
    def __init__(self) -> None:
        self.now = NOW

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture()
def clock() -> _Clock:
    return _Clock()


@pytest.fixture()
def engine(recorder: RecordingSubscriber, clock: _Clock) -> OrderEngine:
    bus = EventBus()
    bus.subscribe(recorder)
    return OrderEngine(bus=bus, clock=clock, estimated_delivery_days=5)


def _cart(*quantities: int) -> CartStore:
    cart = CartStore("cart-1")
    for i, qty in enumerate(quantities):
        cart.add_item(ProductSnapshot(id=f"p-{i}", name="Kurta", price=1400), "M", "Red", qty)
    return cart


def test_create_order_snapshots_cart(engine: OrderEngine, recorder: RecordingSubscriber) -> None:
    cart = _cart(2)
    order = engine.create_order(cart, ADDRESS, CUSTOMER, payment_method=PaymentMethodKind.CARD)

    assert order.id.startswith("ORD")
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.payment_method == PaymentMethodKind.CARD
    assert (order.subtotal, order.shipping, order.tax, order.total) == (2800, 0, 140, 2940)
    assert order.tracking_number == f"TRK{order.id[-6:]}"
    assert order.estimated_delivery == NOW + timedelta(days=5)
    assert [h.notes for h in order.status_history] == ["Order placed successfully"]
    assert recorder.types() == [EventTypeV1.ORDER_CREATED]

    # Later cart edits never reach the order.
    cart.add_item(ProductSnapshot(id="p-9", name="Dupatta", price=600), "Free", "Gold")
    stored = engine.get_order(order.id)
    assert len(stored.items) == 1
    assert stored.total == 2940


def test_create_order_rejects_empty_cart(engine: OrderEngine) -> None:
    with pytest.raises(EmptyCartError):
        engine.create_order(CartStore("empty"), ADDRESS, CUSTOMER)

    assert engine.list_orders() == []


def test_create_order_rejects_incomplete_address(engine: OrderEngine) -> None:
    address = ADDRESS.model_copy(update={"pincode": "  ", "city": ""})

    with pytest.raises(IncompleteAddressError) as exc:
        engine.create_order(_cart(1), address, CUSTOMER)

    assert exc.value.missing == ["city", "pincode"]
    assert engine.list_orders() == []


def test_status_walks_forward_and_appends_history(engine: OrderEngine, clock: _Clock) -> None:
    order = engine.create_order(_cart(1), ADDRESS, CUSTOMER)

    for status in (OrderStatus.CONFIRMED, OrderStatus.PACKED, OrderStatus.SHIPPED):
        clock.now += timedelta(hours=1)
        engine.advance_status(order.id, status)

    clock.now += timedelta(days=1)
    delivered = engine.advance_status(order.id, OrderStatus.DELIVERED, location="Bengaluru")

    assert [h.status for h in delivered.status_history] == [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PACKED,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    ]
    assert delivered.status_history[-1].notes == "Order delivered"
    assert delivered.status_history[-1].location == "Bengaluru"
    assert delivered.delivery_date == clock.now
    assert delivered.updated_at == clock.now


@pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_terminal_statuses_reject_every_transition(
    engine: OrderEngine, terminal: OrderStatus
) -> None:
    order = engine.create_order(_cart(1), ADDRESS, CUSTOMER)
    if terminal == OrderStatus.DELIVERED:
        for status in (OrderStatus.CONFIRMED, OrderStatus.PACKED, OrderStatus.SHIPPED):
            engine.advance_status(order.id, status)
    engine.advance_status(order.id, terminal)

    for status in OrderStatus:
        with pytest.raises(InvalidTransitionError):
            engine.advance_status(order.id, status)

    assert engine.get_order(order.id).status == terminal


def test_cannot_skip_or_go_backwards(engine: OrderEngine) -> None:
    order = engine.create_order(_cart(1), ADDRESS, CUSTOMER)

    with pytest.raises(InvalidTransitionError):
        engine.advance_status(order.id, OrderStatus.SHIPPED)

    engine.advance_status(order.id, OrderStatus.CONFIRMED)
    with pytest.raises(InvalidTransitionError):
        engine.advance_status(order.id, OrderStatus.PENDING)

    assert len(engine.get_order(order.id).status_history) == 2


def test_shipped_orders_cannot_be_cancelled(engine: OrderEngine) -> None:
    order = engine.create_order(_cart(1), ADDRESS, CUSTOMER)
    for status in (OrderStatus.CONFIRMED, OrderStatus.PACKED, OrderStatus.SHIPPED):
        engine.advance_status(order.id, status)

    with pytest.raises(InvalidTransitionError):
        engine.advance_status(order.id, OrderStatus.CANCELLED)


def test_payment_status_graph(engine: OrderEngine) -> None:
    order = engine.create_order(_cart(1), ADDRESS, CUSTOMER)

    with pytest.raises(InvalidTransitionError):
        engine.update_payment_status(order.id, PaymentStatus.COMPLETED)

    engine.update_payment_status(order.id, PaymentStatus.PROCESSING)
    engine.update_payment_status(order.id, PaymentStatus.FAILED)
    engine.update_payment_status(order.id, PaymentStatus.PROCESSING)
    updated = engine.update_payment_status(order.id, PaymentStatus.COMPLETED)

    assert updated.payment_status == PaymentStatus.COMPLETED
    assert updated.status == OrderStatus.PENDING


def test_list_orders_newest_first_per_customer(engine: OrderEngine, clock: _Clock) -> None:
    first = engine.create_order(_cart(1), ADDRESS, CUSTOMER)
    clock.now += timedelta(minutes=5)
    second = engine.create_order(_cart(2), ADDRESS, CUSTOMER)
    clock.now += timedelta(minutes=5)
    engine.create_order(_cart(1), ADDRESS, CUSTOMER.model_copy(update={"email": "b@x.com"}))

    mine = engine.list_orders(customer_email=CUSTOMER.email)
    assert [o.id for o in mine] == [second.id, first.id]
    assert len(engine.list_orders()) == 3


def test_unknown_order(engine: OrderEngine) -> None:
    with pytest.raises(OrderNotFoundError):
        engine.get_order("ORDMISSING")
    with pytest.raises(OrderNotFoundError):
        engine.advance_status("ORDMISSING", OrderStatus.CONFIRMED)


def test_returned_orders_are_copies(engine: OrderEngine) -> None:
    order = engine.create_order(_cart(1), ADDRESS, CUSTOMER)
    order.status_history.clear()
    order.items[0].quantity = 50

    stored = engine.get_order(order.id)
    assert len(stored.status_history) == 1
    assert stored.items[0].quantity == 1
