from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from services.api.app.models.order import Order
from services.api.app.models.payment import Payment, ProviderResponse

DecisionSource = Callable[[], bool]


class PaymentProviderError(Exception):
    """Base class for payment provider errors."""


class PaymentSdkMissingError(PaymentProviderError):
    def __init__(self, package: str) -> None:
        super().__init__(
            f"{package} is not installed. Install the optional group to enable live payments:\n"
            "  pip install -e '.[razorpay]'"
        )
        self.package = package


class PaymentProviderConfigError(PaymentProviderError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Payment provider is not configured. Missing: {', '.join(missing)}")
        self.missing = missing


@dataclass(frozen=True, slots=True)
class ProviderSession:
    provider_order_id: str
    key_id: str | None = None


class PaymentProvider(Protocol):
    name: str
    is_simulated: bool

    def create_session(self, order: Order, payment: Payment) -> ProviderSession: ...

    def verify(self, response: ProviderResponse) -> bool: ...

    def refund(self, payment: Payment, amount: int) -> str: ...
