from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from services.api.app.models.order import Order
from services.api.app.models.payment import Payment, ProviderResponse
from services.api.app.services.payment_base import (
    PaymentProviderConfigError,
    PaymentProviderError,
    PaymentSdkMissingError,
    ProviderSession,
)


@dataclass(frozen=True, slots=True)
class _RazorpayConfig:
    key_id: str
    key_secret: str
    company_name: str


class RazorpayPaymentProvider:
    """Live payments through the Razorpay SDK.

    Amounts are sent in paise. The order receipt is our order id so the Razorpay dashboard
    can be matched back to orders by hand.

    Env vars:
    - LOOOM_PAYMENT_PROVIDER=razorpay
    - RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET (required)
    - LOOOM_PAYEE_NAME (default: looom.shop)
    """

    name = "RAZORPAY"
    is_simulated = False

    def __init__(self, cfg: _RazorpayConfig, client: Any | None = None) -> None:
        self._cfg = cfg
        self._client = client if client is not None else _razorpay_client(cfg)

    @classmethod
    def from_env(cls) -> "RazorpayPaymentProvider":
        key_id = os.getenv("RAZORPAY_KEY_ID", "").strip()
        key_secret = os.getenv("RAZORPAY_KEY_SECRET", "").strip()

        missing = [
            name
            for name, value in (("RAZORPAY_KEY_ID", key_id), ("RAZORPAY_KEY_SECRET", key_secret))
            if not value
        ]
        if missing:
            raise PaymentProviderConfigError(missing)

        return cls(
            _RazorpayConfig(
                key_id=key_id,
                key_secret=key_secret,
                company_name=os.getenv("LOOOM_PAYEE_NAME", "looom.shop"),
            )
        )

    @property
    def key_id(self) -> str:
        return self._cfg.key_id

    def create_session(self, order: Order, payment: Payment) -> ProviderSession:
        data = {
            "amount": payment.amount * 100,
            "currency": payment.currency,
            "receipt": order.id,
            "notes": {
                "order_id": order.id,
                "transaction_ref": payment.transaction_ref,
                "customer_email": order.customer.email,
                "customer_phone": order.customer.phone,
            },
        }

        try:
            created = self._client.order.create(data=data)
        except Exception as e:
            raise PaymentProviderError(f"Razorpay order creation failed: {e}") from e

        provider_order_id = created.get("id") if isinstance(created, dict) else None
        if not provider_order_id:
            raise PaymentProviderError(f"Unexpected Razorpay order response: {created!r}")

        return ProviderSession(provider_order_id=str(provider_order_id), key_id=self._cfg.key_id)

    def verify(self, response: ProviderResponse) -> bool:
        if not (
            response.provider_order_id
            and response.provider_payment_id
            and response.provider_signature
        ):
            return False

        try:
            result = self._client.utility.verify_payment_signature(
                {
                    "razorpay_order_id": response.provider_order_id,
                    "razorpay_payment_id": response.provider_payment_id,
                    "razorpay_signature": response.provider_signature,
                }
            )
        except Exception as e:
            if _is_signature_error(e):
                return False
            raise PaymentProviderError(f"Razorpay signature check failed: {e}") from e

        return result is not False

    def refund(self, payment: Payment, amount: int) -> str:
        if not payment.provider_payment_id:
            raise PaymentProviderError(f"Payment {payment.id} has no Razorpay payment id")

        try:
            refund = self._client.payment.refund(
                payment.provider_payment_id, {"amount": amount * 100}
            )
        except Exception as e:
            raise PaymentProviderError(f"Razorpay refund failed: {e}") from e

        return str(refund.get("id", "")) if isinstance(refund, dict) else ""


def _razorpay_module() -> Any:
    try:
        import razorpay
    except ImportError as e:
        raise PaymentSdkMissingError("razorpay") from e

    return razorpay


def _razorpay_client(cfg: _RazorpayConfig) -> Any:
    razorpay = _razorpay_module()

    try:
        client = razorpay.Client(auth=(cfg.key_id, cfg.key_secret))
        client.set_app_details({"title": cfg.company_name, "version": "0.1.0"})
    except Exception as e:
        raise PaymentProviderError(f"Razorpay client initialization failed: {e}") from e

    return client


def _is_signature_error(exc: Exception) -> bool:
    razorpay = _razorpay_module()
    return isinstance(exc, razorpay.errors.SignatureVerificationError)
