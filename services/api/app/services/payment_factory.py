from __future__ import annotations

import logging
import os

from services.api.app.services.payment_base import (
    DecisionSource,
    PaymentProvider,
    PaymentProviderError,
)
from services.api.app.services.payment_simulated import (
    SimulatedPaymentProvider,
    decision_source_from_env,
)

logger = logging.getLogger(__name__)


def get_payment_provider(decision_source: DecisionSource | None = None) -> PaymentProvider:
    """Select a payment provider based on env vars.

    Defaults to the simulated provider so tests and local dev are deterministic. When the live
    provider is requested but its SDK cannot be loaded or initialized, checkout falls back to
    the simulated provider instead of failing; the fallback is logged and every payment it
    produces is flagged ``is_simulated``.
    """

    mode = os.getenv("LOOOM_PAYMENT_PROVIDER", "simulated").strip().lower()

    if mode in ("simulated", "mock"):
        return SimulatedPaymentProvider(decision_source or decision_source_from_env())

    if mode == "razorpay":
        try:
            from services.api.app.services.payment_razorpay import RazorpayPaymentProvider

            return RazorpayPaymentProvider.from_env()
        except PaymentProviderError as e:
            logger.warning("payments.provider_fallback provider=razorpay reason=%s", e)
            return SimulatedPaymentProvider(decision_source or decision_source_from_env())

    raise ValueError(
        f"Unknown LOOOM_PAYMENT_PROVIDER={mode!r}. Expected simulated or razorpay."
    )
