from __future__ import annotations

import os
import random
from uuid import uuid4

from services.api.app.models.order import Order
from services.api.app.models.payment import Payment, ProviderResponse
from services.api.app.services.errors import PaymentInitializationError
from services.api.app.services.payment_base import DecisionSource, ProviderSession


def always(outcome: bool) -> DecisionSource:
    def decide() -> bool:
        return outcome

    return decide


def random_decision(success_rate: float, rng: random.Random | None = None) -> DecisionSource:
    rng = rng or random.Random()

    def decide() -> bool:
        return rng.random() < success_rate

    return decide


def decision_source_from_env() -> DecisionSource:
    outcome = os.getenv("LOOOM_SIMULATED_OUTCOME", "success").strip().lower()

    if outcome == "success":
        return always(True)

    if outcome == "failure":
        return always(False)

    if outcome == "random":
        return random_decision(float(os.getenv("LOOOM_SIMULATED_SUCCESS_RATE", "0.7")))

    raise PaymentInitializationError(
        f"Unknown LOOOM_SIMULATED_OUTCOME={outcome!r}. Expected success, failure or random."
    )


class SimulatedPaymentProvider:
    """Stands in for the live provider when its SDK is unavailable.

    Outcomes come from the injected decision source. Callbacks go through the same
    reconciliation path as live ones; only ``is_simulated`` tells them apart.
    """

    name = "SIMULATED"
    is_simulated = True

    def __init__(self, decision_source: DecisionSource) -> None:
        self._decide = decision_source

    def create_session(self, order: Order, payment: Payment) -> ProviderSession:
        del order, payment
        return ProviderSession(provider_order_id=f"sim_order_{uuid4().hex[:14]}")

    def verify(self, response: ProviderResponse) -> bool:
        del response
        return True

    def refund(self, payment: Payment, amount: int) -> str:
        del payment, amount
        return f"sim_rfnd_{uuid4().hex[:14]}"

    def resolve(self, payment: Payment) -> ProviderResponse:
        if self._decide():
            return ProviderResponse(
                success=True,
                transaction_ref=payment.transaction_ref,
                order_id=payment.order_id,
                provider_order_id=payment.provider_order_id,
                provider_payment_id=f"sim_pay_{uuid4().hex[:14]}",
            )

        return ProviderResponse(
            success=False,
            transaction_ref=payment.transaction_ref,
            order_id=payment.order_id,
            provider_order_id=payment.provider_order_id,
            error_code="PAYMENT_DECLINED",
            error_description="Payment verification failed. Please try again.",
        )
