from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from services.api.app.models.cart import ProductSnapshot
from services.api.app.models.order import Address, CustomerInfo, Order
from services.api.app.models.payment import PaymentMethodKind
from services.api.app.services.cart import CartStore
from services.api.app.services.deadlines import ManualDeadlineScheduler
from services.api.app.services.events import EventBus, RecordingSubscriber
from services.api.app.services.orders import OrderEngine
from services.api.app.services.payment_base import PaymentProvider
from services.api.app.services.payment_simulated import SimulatedPaymentProvider
from services.api.app.services.payments import GatewayConfig, PaymentGateway

ADDRESS = Address(street="12 MG Road", city="Bengaluru", state="KA", pincode="560001")
CUSTOMER = CustomerInfo(name="Asha", email="asha@example.com", phone="9999999999")


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class Decisions:
    """Scripted simulated outcomes. Defaults to success once the script runs out."""

    def __init__(self, *outcomes: bool) -> None:
        self._outcomes = list(outcomes)

    def __call__(self) -> bool:
        return self._outcomes.pop(0) if self._outcomes else True


@dataclass
class Checkout:
    orders: OrderEngine
    gateway: PaymentGateway
    scheduler: ManualDeadlineScheduler
    clock: FakeClock
    recorder: RecordingSubscriber
    place: Callable[..., Order]
    bus: EventBus


def build_checkout(
    provider: PaymentProvider | None = None, decisions: Decisions | None = None
) -> Checkout:
    clock = FakeClock()
    bus = EventBus()
    recorder = RecordingSubscriber()
    bus.subscribe(recorder)
    scheduler = ManualDeadlineScheduler()

    orders = OrderEngine(bus=bus, clock=clock, estimated_delivery_days=5)
    gateway = PaymentGateway(
        orders,
        provider or SimulatedPaymentProvider(decisions or Decisions()),
        config=GatewayConfig(upi_timeout_seconds=300),
        scheduler=scheduler,
        clock=clock,
        bus=bus,
    )

    def place(
        price: int = 1400,
        quantity: int = 2,
        method: PaymentMethodKind = PaymentMethodKind.UPI,
    ) -> Order:
        cart = CartStore("cart")
        product = ProductSnapshot(id="kurta-01", name="Kurta", price=price)
        cart.add_item(product, "M", "Red", quantity)
        return orders.create_order(cart, ADDRESS, CUSTOMER, payment_method=method)

    return Checkout(orders, gateway, scheduler, clock, recorder, place, bus)
