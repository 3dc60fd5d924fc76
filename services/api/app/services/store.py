from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from uuid import uuid4

from services.api.app.models.order import Address, CustomerInfo, Order
from services.api.app.models.payment import PaymentMethodKind
from services.api.app.services.addresses import AddressBook
from services.api.app.services.cart import CartStore
from services.api.app.services.deadlines import DeadlineScheduler
from services.api.app.services.errors import IncompleteAddressError, SessionNotFoundError
from services.api.app.services.events import EventBus
from services.api.app.services.notifications import NotificationFeed
from services.api.app.services.orders import Clock, OrderEngine, utc_now
from services.api.app.services.payment_base import PaymentProvider
from services.api.app.services.payment_factory import get_payment_provider
from services.api.app.services.payments import GatewayConfig, PaymentGateway
from services.api.app.services.pricing import PricingConfig

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    session_id: str
    cart: CartStore


class CheckoutStore:
    """Everything a running storefront shares: sessions, orders, payments and their feeds.

    The payment gateway is built on first use, so a broken payment setup only affects
    payment calls and never cart or order operations.
    """

    def __init__(
        self,
        *,
        pricing: PricingConfig | None = None,
        gateway_config: GatewayConfig | None = None,
        provider: PaymentProvider | None = None,
        scheduler: DeadlineScheduler | None = None,
        clock: Clock = utc_now,
        bus: EventBus | None = None,
    ) -> None:
        self.bus = bus or EventBus()
        self.pricing = pricing or PricingConfig.from_env()
        self.orders = OrderEngine(pricing=self.pricing, bus=self.bus, clock=clock)
        self.addresses = AddressBook()
        self.notifications = NotificationFeed()
        self.bus.subscribe(self.notifications)

        self._gateway_config = gateway_config
        self._provider = provider
        self._scheduler = scheduler
        self._clock = clock
        self._gateway: PaymentGateway | None = None
        self._sessions: dict[str, CheckoutSession] = {}
        self._lock = threading.RLock()

    @property
    def gateway(self) -> PaymentGateway:
        with self._lock:
            if self._gateway is None:
                provider = self._provider or get_payment_provider()
                self._gateway = PaymentGateway(
                    self.orders,
                    provider,
                    config=self._gateway_config or GatewayConfig.from_env(),
                    scheduler=self._scheduler,
                    clock=self._clock,
                    bus=self.bus,
                )
                logger.info(
                    "payments.gateway_ready provider=%s simulated=%s",
                    provider.name,
                    provider.is_simulated,
                )
            return self._gateway

    def open_session(self) -> CheckoutSession:
        session_id = uuid4().hex
        session = CheckoutSession(
            session_id=session_id,
            cart=CartStore(session_id, pricing=self.pricing, bus=self.bus),
        )
        with self._lock:
            self._sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> CheckoutSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def end_session(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)

    def place_order(
        self,
        session_id: str,
        customer: CustomerInfo,
        *,
        address: Address | None = None,
        user_id: str | None = None,
        payment_method: PaymentMethodKind = PaymentMethodKind.UPI,
        notes: str | None = None,
    ) -> Order:
        """Snapshot the session cart into an order, then empty the cart.

        Without an explicit address the user's default saved address is used.
        """

        session = self.get_session(session_id)
        if address is None and user_id:
            address = self.addresses.default_for(user_id)
        if address is None:
            raise IncompleteAddressError(["street", "city", "state", "pincode"])

        # Snapshot and clear under one hold so a concurrent add lands in the order or the cart.
        with session.cart.locked():
            order = self.orders.create_order(
                session.cart, address, customer, payment_method=payment_method, notes=notes
            )
            session.cart.clear()
        return order


_STORE: CheckoutStore | None = None
_STORE_LOCK = threading.Lock()


def get_store() -> CheckoutStore:
    global _STORE

    with _STORE_LOCK:
        if _STORE is None:
            _STORE = CheckoutStore()
        return _STORE


def reset_store(store: CheckoutStore | None = None) -> CheckoutStore:
    """Replace the process wide store. Tests use this to start from a clean slate."""

    global _STORE

    with _STORE_LOCK:
        _STORE = store or CheckoutStore()
        return _STORE
