from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from services.api.app.models.cart import CartTotals, LineItem


@dataclass(frozen=True, slots=True)
class PricingConfig:
    """The single source of shipping and tax constants.

    Shipping is waived only when the subtotal is strictly above the threshold.
    """

    free_shipping_threshold: int = 2000
    flat_shipping_fee: int = 100
    tax_rate: Decimal = Decimal("0.05")
    currency: str = "INR"

    @classmethod
    def from_env(cls) -> "PricingConfig":
        return cls(
            free_shipping_threshold=int(os.getenv("LOOOM_FREE_SHIPPING_THRESHOLD", "2000")),
            flat_shipping_fee=int(os.getenv("LOOOM_FLAT_SHIPPING_FEE", "100")),
            tax_rate=Decimal(os.getenv("LOOOM_TAX_RATE", "0.05")),
            currency=os.getenv("LOOOM_CURRENCY", "INR").strip().upper(),
        )


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def subtotal_of(items: Iterable[LineItem]) -> int:
    return sum(item.unit_price * item.quantity for item in items)


def shipping_for(subtotal: int, config: PricingConfig) -> int:
    if subtotal > config.free_shipping_threshold:
        return 0
    return config.flat_shipping_fee


def tax_for(subtotal: int, config: PricingConfig) -> int:
    return round_half_up(Decimal(subtotal) * config.tax_rate)


def compute_totals(items: Iterable[LineItem], config: PricingConfig | None = None) -> CartTotals:
    config = config or PricingConfig()

    subtotal = subtotal_of(items)
    shipping = shipping_for(subtotal, config)
    tax = tax_for(subtotal, config)
    return CartTotals(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        total=subtotal + shipping + tax,
    )
