"""Shared checkout card payload schema (v1).

The storefront web app and the order tracking screens render these payloads consistently.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class CheckoutCardTypeV1(str, Enum):
    PAYMENT_PENDING = "PAYMENT_PENDING"
    DONE = "DONE"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class CheckoutActionTypeV1(str, Enum):
    PAY = "PAY"
    RETRY = "RETRY"
    EDIT_CART = "EDIT_CART"
    EDIT_ADDRESS = "EDIT_ADDRESS"
    CANCEL = "CANCEL"


class CheckoutActionV1(BaseModel):
    type: CheckoutActionTypeV1
    label: str
    payload: dict[str, Any] = Field(default_factory=dict)


class CheckoutCardV1(BaseModel):
    version: str = "1"
    type: CheckoutCardTypeV1

    title: str
    summary: str

    # Server-side IDs to support follow-up actions.
    order_id: str
    payment_id: str | None = None
    transaction_ref: str | None = None

    provider: str | None = None
    is_simulated: bool = False
    amount: int | None = None
    currency: str = "INR"

    # Method-specific rendering payload (UPI links, provider checkout options, COD note).
    body: dict[str, Any] = Field(default_factory=dict)

    actions: list[CheckoutActionV1] = Field(default_factory=list, max_length=4)
    warnings: list[str] = Field(default_factory=list, max_length=8)
