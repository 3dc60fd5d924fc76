"""Shared event schema (v1).

The engine publishes an append-only stream of domain events. Clients and the audit log consume
these events to render order tracking and payment history.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    CART = "Cart"
    ORDER = "Order"
    PAYMENT = "Payment"


class EventTypeV1(str, Enum):
    CART_ITEM_ADDED = "CART_ITEM_ADDED"
    CART_ITEM_UPDATED = "CART_ITEM_UPDATED"
    CART_ITEM_REMOVED = "CART_ITEM_REMOVED"
    CART_CLEARED = "CART_CLEARED"
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    ORDER_PAYMENT_STATUS_CHANGED = "ORDER_PAYMENT_STATUS_CHANGED"
    PAYMENT_STARTED = "PAYMENT_STARTED"
    PAYMENT_CAPTURED = "PAYMENT_CAPTURED"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    PAYMENT_CANCELLED = "PAYMENT_CANCELLED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"


class EventV1(BaseModel):
    id: str

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    # Serialized snapshot of the entity after the change, plus event specific fields.
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
