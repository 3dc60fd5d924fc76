from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.models.order import (
    Address,
    CustomerInfo,
    Order,
    OrderStatus,
    OrderStatusUpdate,
    PaymentStatus,
)
from services.api.app.models.payment import PaymentMethodKind
from services.api.app.services.cart import CartStore
from services.api.app.services.errors import (
    EmptyCartError,
    IncompleteAddressError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from services.api.app.services.events import EventBus
from services.api.app.services.pricing import PricingConfig, compute_totals

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PACKED, OrderStatus.CANCELLED}),
    OrderStatus.PACKED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    # A failed payment may be retried with a fresh attempt.
    PaymentStatus.FAILED: frozenset({PaymentStatus.PROCESSING}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    return f"ORD{uuid4().hex[:12].upper()}"


class OrderEngine:
    """Owns every order once created: snapshots, status machine and audit trail."""

    def __init__(
        self,
        *,
        pricing: PricingConfig | None = None,
        bus: EventBus | None = None,
        clock: Clock = utc_now,
        estimated_delivery_days: int | None = None,
    ) -> None:
        self._pricing = pricing or PricingConfig()
        self._bus = bus
        self._clock = clock
        if estimated_delivery_days is None:
            estimated_delivery_days = int(os.getenv("LOOOM_ESTIMATED_DELIVERY_DAYS", "5"))
        self._delivery_days = estimated_delivery_days
        self._orders: dict[str, Order] = {}
        self._lock = threading.RLock()

    def create_order(
        self,
        cart: CartStore,
        address: Address,
        customer: CustomerInfo,
        payment_method: PaymentMethodKind = PaymentMethodKind.UPI,
        notes: str | None = None,
    ) -> Order:
        items = cart.items
        if not items:
            raise EmptyCartError()

        missing = address.missing_fields()
        if missing:
            raise IncompleteAddressError(missing)

        totals = compute_totals(items, self._pricing)
        now = self._clock()
        order_id = new_order_id()

        order = Order(
            id=order_id,
            customer=customer.model_copy(),
            items=items,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            total=totals.total,
            status=OrderStatus.PENDING,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING,
            address=address.model_copy(),
            created_at=now,
            updated_at=now,
            status_history=[
                OrderStatusUpdate(
                    status=OrderStatus.PENDING,
                    timestamp=now,
                    notes="Order placed successfully",
                )
            ],
            tracking_number=f"TRK{order_id[-6:]}",
            estimated_delivery=now + timedelta(days=self._delivery_days),
            notes=notes,
        )

        with self._lock:
            self._orders[order.id] = order
            logger.info(
                "orders.created order=%s total=%s items=%s method=%s",
                order.id,
                order.total,
                len(order.items),
                payment_method.value,
            )
            self._publish(EventTypeV1.ORDER_CREATED, order)
            return order.model_copy(deep=True)

    def get_order(self, order_id: str) -> Order:
        with self._lock:
            return self._get(order_id).model_copy(deep=True)

    def list_orders(self, customer_email: str | None = None) -> list[Order]:
        with self._lock:
            orders = [
                o
                for o in self._orders.values()
                if customer_email is None or o.customer.email == customer_email
            ]
            orders.sort(key=lambda o: o.created_at, reverse=True)
            return [o.model_copy(deep=True) for o in orders]

    def advance_status(
        self,
        order_id: str,
        new_status: OrderStatus,
        notes: str | None = None,
        location: str | None = None,
    ) -> Order:
        with self._lock:
            order = self._get(order_id)
            previous = order.status
            if new_status not in ORDER_TRANSITIONS[previous]:
                raise InvalidTransitionError("status", previous.value, new_status.value)

            now = self._clock()
            order.status = new_status
            order.updated_at = now
            order.status_history.append(
                OrderStatusUpdate(
                    status=new_status,
                    timestamp=now,
                    location=location,
                    notes=notes or f"Order {new_status.value}",
                )
            )
            if new_status == OrderStatus.DELIVERED:
                order.delivery_date = now

            logger.info(
                "orders.status order=%s from=%s to=%s", order.id, previous.value, new_status.value
            )
            self._publish(
                EventTypeV1.ORDER_STATUS_CHANGED,
                order,
                previous=previous.value,
                current=new_status.value,
            )
            return order.model_copy(deep=True)

    def update_payment_status(
        self,
        order_id: str,
        new_status: PaymentStatus,
        *,
        payment_method: PaymentMethodKind | None = None,
    ) -> Order:
        """Move the parallel payment status. Called by the payment gateway only.

        ``payment_method`` records the method of the attempt that starts processing, which may
        differ from the one chosen at checkout.
        """

        with self._lock:
            order = self._get(order_id)
            previous = order.payment_status
            if new_status not in PAYMENT_TRANSITIONS[previous]:
                raise InvalidTransitionError("payment_status", previous.value, new_status.value)

            order.payment_status = new_status
            if payment_method is not None:
                order.payment_method = payment_method
            order.updated_at = self._clock()

            logger.info(
                "orders.payment_status order=%s from=%s to=%s",
                order.id,
                previous.value,
                new_status.value,
            )
            self._publish(
                EventTypeV1.ORDER_PAYMENT_STATUS_CHANGED,
                order,
                previous=previous.value,
                current=new_status.value,
            )
            return order.model_copy(deep=True)

    def _get(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _publish(self, event_type: EventTypeV1, order: Order, **extra: str) -> None:
        if self._bus is None:
            return

        self._bus.publish(
            entity_type=EntityTypeV1.ORDER,
            entity_id=order.id,
            event_type=event_type,
            payload={"order": order.model_dump(mode="json"), **extra},
        )
