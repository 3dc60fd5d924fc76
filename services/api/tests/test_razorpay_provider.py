from __future__ import annotations

from typing import Any

import pytest
from services.api.app.models.payment import CardMethod, PaymentMethodKind, ProviderResponse
from services.api.app.services.payment_base import PaymentProviderConfigError, PaymentProviderError
from services.api.app.services.payment_razorpay import RazorpayPaymentProvider, _RazorpayConfig
from services.api.tests.helpers import build_checkout

CARD = CardMethod(number="4111111111111111", expiry="12/30", cvv="123", holder_name="Asha")


class _Orders:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.created: list[dict[str, Any]] = []

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        if self.fail:
            raise RuntimeError("BAD_REQUEST_ERROR")
        self.created.append(data)
        return {"id": "order_rzp_1", "amount": data["amount"], "status": "created"}


class _Utility:
    def __init__(self) -> None:
        self.checked: list[dict[str, str]] = []

    def verify_payment_signature(self, params: dict[str, str]) -> bool:
        self.checked.append(params)
        return True


class _Payments:
    def __init__(self) -> None:
        self.refunds: list[tuple[str, dict[str, int]]] = []

    def refund(self, payment_id: str, data: dict[str, int]) -> dict[str, str]:
        self.refunds.append((payment_id, data))
        return {"id": "rfnd_rzp_1"}


class _FakeClient:
    def __init__(self, fail_orders: bool = False) -> None:
        self.order = _Orders(fail=fail_orders)
        self.utility = _Utility()
        self.payment = _Payments()


def _provider(client: _FakeClient) -> RazorpayPaymentProvider:
    cfg = _RazorpayConfig(key_id="rzp_test_key", key_secret="secret", company_name="looom.shop")
    return RazorpayPaymentProvider(cfg, client=client)


def test_from_env_requires_both_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RAZORPAY_KEY_ID", "rzp_test_key")
    monkeypatch.delenv("RAZORPAY_KEY_SECRET", raising=False)

    with pytest.raises(PaymentProviderConfigError) as exc:
        RazorpayPaymentProvider.from_env()

    assert exc.value.missing == ["RAZORPAY_KEY_SECRET"]


def test_order_is_created_in_paise_with_receipt_and_notes() -> None:
    client = _FakeClient()
    checkout = build_checkout(provider=_provider(client))
    order = checkout.place(method=PaymentMethodKind.CARD)

    attempt = checkout.gateway.start_payment(order.id, CARD)

    [data] = client.order.created
    assert data["amount"] == 294000
    assert data["currency"] == "INR"
    assert data["receipt"] == order.id
    assert data["notes"]["customer_email"] == "asha@example.com"
    assert data["notes"]["transaction_ref"] == attempt.payment.transaction_ref
    assert attempt.payment.provider == "RAZORPAY"
    assert attempt.payment.provider_order_id == "order_rzp_1"
    assert attempt.instructions.key_id == "rzp_test_key"


def test_signed_callback_captures_and_refund_goes_to_razorpay() -> None:
    client = _FakeClient()
    checkout = build_checkout(provider=_provider(client))
    order = checkout.place(method=PaymentMethodKind.CARD)
    checkout.gateway.start_payment(order.id, CARD)

    captured = checkout.gateway.reconcile_payment(
        ProviderResponse(
            success=True,
            order_id=order.id,
            provider_order_id="order_rzp_1",
            provider_payment_id="pay_rzp_1",
            provider_signature="sig",
        )
    )
    assert captured.provider_payment_id == "pay_rzp_1"
    assert client.utility.checked == [
        {
            "razorpay_order_id": "order_rzp_1",
            "razorpay_payment_id": "pay_rzp_1",
            "razorpay_signature": "sig",
        }
    ]

    refunded = checkout.gateway.refund_payment(captured.id)
    assert client.payment.refunds == [("pay_rzp_1", {"amount": 294000})]
    assert refunded.notes["refund_id"] == "rfnd_rzp_1"


def test_unsigned_callback_does_not_verify() -> None:
    provider = _provider(_FakeClient())

    assert provider.verify(ProviderResponse(success=True, provider_order_id="order_rzp_1")) is False


def test_order_creation_errors_are_provider_errors() -> None:
    checkout = build_checkout(provider=_provider(_FakeClient(fail_orders=True)))
    order = checkout.place(method=PaymentMethodKind.CARD)

    with pytest.raises(PaymentProviderError, match="Razorpay order creation failed"):
        checkout.gateway.start_payment(order.id, CARD)
