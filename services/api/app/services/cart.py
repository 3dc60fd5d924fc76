from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.models.cart import CartTotals, LineItem, ProductSnapshot
from services.api.app.services.events import EventBus
from services.api.app.services.errors import InvalidQuantityError
from services.api.app.services.pricing import PricingConfig, compute_totals

logger = logging.getLogger(__name__)


class CartStore:
    """Session scoped cart keyed by (product, size, color).

    Every mutation runs under the cart lock, so a merge is never observed half applied.
    """

    def __init__(
        self,
        cart_id: str,
        *,
        pricing: PricingConfig | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.cart_id = cart_id
        self._pricing = pricing or PricingConfig()
        self._bus = bus
        self._items: list[LineItem] = []
        self._is_open = False
        self._lock = threading.RLock()

    @property
    def items(self) -> list[LineItem]:
        with self._lock:
            return [item.model_copy() for item in self._items]

    @property
    def count(self) -> int:
        with self._lock:
            return sum(item.quantity for item in self._items)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._items

    @property
    def is_open(self) -> bool:
        return self._is_open

    def set_open(self, is_open: bool) -> None:
        self._is_open = is_open

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the cart lock across several calls. Other threads wait until the block exits."""

        with self._lock:
            yield

    def add_item(
        self, product: ProductSnapshot, size: str, color: str, quantity: int = 1
    ) -> LineItem:
        if quantity < 1:
            raise InvalidQuantityError(quantity)

        with self._lock:
            existing = self._find(product.id, size, color)
            if existing is not None:
                existing.quantity += quantity
                item = existing
            else:
                item = LineItem(
                    product_id=product.id,
                    name=product.name,
                    unit_price=product.price,
                    quantity=quantity,
                    size=size,
                    color=color,
                )
                self._items.append(item)

            logger.debug(
                "cart.add cart=%s product=%s variant=%s/%s qty=%s",
                self.cart_id,
                product.id,
                size,
                color,
                item.quantity,
            )
            self._publish(EventTypeV1.CART_ITEM_ADDED, item)
            return item.model_copy()

    def update_quantity(self, product_id: str, size: str, color: str, quantity: int) -> None:
        with self._lock:
            if quantity <= 0:
                self.remove_item(product_id, size, color)
                return

            item = self._find(product_id, size, color)
            if item is None:
                return

            item.quantity = quantity
            self._publish(EventTypeV1.CART_ITEM_UPDATED, item)

    def remove_item(self, product_id: str, size: str, color: str) -> None:
        with self._lock:
            item = self._find(product_id, size, color)
            if item is None:
                return

            self._items.remove(item)
            self._publish(EventTypeV1.CART_ITEM_REMOVED, item)

    def clear(self) -> None:
        with self._lock:
            self._items = []
            if self._bus is not None:
                self._bus.publish(
                    entity_type=EntityTypeV1.CART,
                    entity_id=self.cart_id,
                    event_type=EventTypeV1.CART_CLEARED,
                )

    def totals(self) -> CartTotals:
        with self._lock:
            return compute_totals(self._items, self._pricing)

    def _find(self, product_id: str, size: str, color: str) -> LineItem | None:
        for item in self._items:
            if item.matches(product_id, size, color):
                return item
        return None

    def _publish(self, event_type: EventTypeV1, item: LineItem) -> None:
        if self._bus is None:
            return

        self._bus.publish(
            entity_type=EntityTypeV1.CART,
            entity_id=self.cart_id,
            event_type=event_type,
            payload={"item": item.model_dump(mode="json")},
        )
