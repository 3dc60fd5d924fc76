from __future__ import annotations

import pytest
from packages.shared.schemas.events import EventTypeV1
from services.api.app.models.order import Order, OrderStatus, PaymentStatus
from services.api.app.models.payment import (
    CardMethod,
    CheckoutInstructions,
    CodInstructions,
    CodMethod,
    NetBankingMethod,
    Payment,
    PaymentMethodKind,
    PaymentRecordStatus,
    ProviderResponse,
    UpiMethod,
    WalletMethod,
)
from services.api.app.services.errors import (
    IncompletePaymentDetailsError,
    InvalidTransitionError,
    OrderNotPayableError,
    PaymentLimitError,
)
from services.api.app.services.payment_base import PaymentProviderError, ProviderSession
from services.api.tests.helpers import Checkout, build_checkout

CARD = CardMethod(number="4111 1111 1111 1111", expiry="12/30", cvv="123", holder_name="Asha")


class _LiveProvider:
    name = "FAKE_LIVE"
    is_simulated = False

    def __init__(self, *, signature_ok: bool = True, fail_create: bool = False) -> None:
        self.signature_ok = signature_ok
        self.fail_create = fail_create
        self.refunds: list[tuple[str, int]] = []

    def create_session(self, order: Order, payment: Payment) -> ProviderSession:
        if self.fail_create:
            raise PaymentProviderError("gateway down")
        return ProviderSession(provider_order_id=f"order_{order.id}", key_id="rzp_test_key")

    def verify(self, response: ProviderResponse) -> bool:
        return self.signature_ok

    def refund(self, payment: Payment, amount: int) -> str:
        self.refunds.append((payment.id, amount))
        return "rfnd_1"


def test_card_attempt_uses_provider_checkout(checkout: Checkout) -> None:
    order = checkout.place(method=PaymentMethodKind.CARD)
    attempt = checkout.gateway.start_payment(order.id, CARD)

    instructions = attempt.instructions
    assert isinstance(instructions, CheckoutInstructions)
    assert instructions.amount_minor == 294000
    assert instructions.currency == "INR"
    assert instructions.prefill["email"] == "asha@example.com"

    payment = attempt.payment
    assert payment.method == PaymentMethodKind.CARD
    assert payment.method_detail == "Card **** 1111"
    assert payment.fee == 74
    assert payment.tax == 13
    assert payment.expires_at is None
    assert checkout.scheduler.pending() == []


@pytest.mark.parametrize(
    "method",
    [
        CardMethod(number="4111111111111111", expiry="12/30", cvv="  ", holder_name="Asha"),
        NetBankingMethod(bank=""),
        WalletMethod(wallet=" "),
    ],
)
def test_incomplete_details_are_rejected_before_anything_is_recorded(
    checkout: Checkout, method
) -> None:
    order = checkout.place()

    with pytest.raises(IncompletePaymentDetailsError) as exc:
        checkout.gateway.start_payment(order.id, method)

    assert exc.value.retryable is True
    assert checkout.gateway.payments_for_order(order.id) == []
    assert checkout.orders.get_order(order.id).payment_status == PaymentStatus.PENDING


def test_wallet_and_netbanking_fees(checkout: Checkout) -> None:
    order = checkout.place()

    wallet = checkout.gateway.start_payment(order.id, WalletMethod(wallet="paytm")).payment
    assert (wallet.fee, wallet.tax, wallet.method_detail) == (44, 8, "paytm")

    bank = checkout.gateway.start_payment(order.id, NetBankingMethod(bank="HDFC")).payment
    assert (bank.fee, bank.tax, bank.method_detail) == (0, 0, "HDFC")


def test_cod_is_captured_immediately(checkout: Checkout) -> None:
    order = checkout.place(method=PaymentMethodKind.COD)
    attempt = checkout.gateway.start_payment(order.id, CodMethod())

    assert isinstance(attempt.instructions, CodInstructions)
    payment = attempt.payment
    assert payment.status == PaymentRecordStatus.CAPTURED
    assert payment.provider == "COD"
    assert payment.is_simulated is False

    stored = checkout.orders.get_order(order.id)
    assert stored.payment_status == PaymentStatus.COMPLETED
    assert stored.status == OrderStatus.PENDING
    assert checkout.recorder.types()[-2:] == [
        EventTypeV1.PAYMENT_STARTED,
        EventTypeV1.PAYMENT_CAPTURED,
    ]


def test_order_records_the_method_actually_used(checkout: Checkout) -> None:
    order = checkout.place(method=PaymentMethodKind.UPI)

    checkout.gateway.start_payment(order.id, CodMethod())

    stored = checkout.orders.get_order(order.id)
    assert stored.payment_method == PaymentMethodKind.COD
    assert [p.method for p in checkout.gateway.payments_for_order(order.id)] == [
        PaymentMethodKind.COD
    ]
    snapshots = [
        e.payload["order"]
        for e in checkout.recorder.events
        if e.event_type == EventTypeV1.ORDER_PAYMENT_STATUS_CHANGED
    ]
    assert [s["payment_method"] for s in snapshots] == ["cod", "cod"]


def test_retry_with_another_method_updates_the_order(checkout: Checkout) -> None:
    order = checkout.place(method=PaymentMethodKind.UPI)
    ref = checkout.gateway.start_payment(order.id, UpiMethod()).payment.transaction_ref
    checkout.gateway.cancel_payment(ref)

    checkout.gateway.start_payment(order.id, CARD)

    assert checkout.orders.get_order(order.id).payment_method == PaymentMethodKind.CARD


def test_method_limit(checkout: Checkout) -> None:
    order = checkout.place(price=12000, quantity=1)

    with pytest.raises(PaymentLimitError) as exc:
        checkout.gateway.start_payment(order.id, CodMethod())

    assert exc.value.limit == 10000
    assert exc.value.amount == 12600
    assert checkout.orders.get_order(order.id).payment_status == PaymentStatus.PENDING

    # Another method still works.
    attempt = checkout.gateway.start_payment(order.id, UpiMethod())
    assert attempt.payment.amount == 12600


def test_paid_or_cancelled_orders_are_not_payable(checkout: Checkout) -> None:
    paid = checkout.place()
    ref = checkout.gateway.start_payment(paid.id, UpiMethod()).payment.transaction_ref
    checkout.gateway.simulate_callback(ref)
    with pytest.raises(OrderNotPayableError):
        checkout.gateway.start_payment(paid.id, UpiMethod())

    cancelled = checkout.place()
    checkout.orders.advance_status(cancelled.id, OrderStatus.CANCELLED)
    with pytest.raises(OrderNotPayableError):
        checkout.gateway.start_payment(cancelled.id, UpiMethod())


def test_refund_captured_payment() -> None:
    provider = _LiveProvider()
    checkout = build_checkout(provider=provider)
    order = checkout.place(method=PaymentMethodKind.CARD)
    payment = checkout.gateway.start_payment(order.id, CARD).payment

    with pytest.raises(InvalidTransitionError):
        checkout.gateway.refund_payment(payment.id)

    checkout.gateway.reconcile_payment(
        ProviderResponse(
            success=True,
            transaction_ref=payment.transaction_ref,
            provider_payment_id="pay_live_1",
            provider_signature="sig",
        )
    )
    refunded = checkout.gateway.refund_payment(payment.id, reason="Size did not fit")

    assert refunded.status == PaymentRecordStatus.REFUNDED
    assert refunded.refunded_amount == 2940
    assert refunded.notes["refund_id"] == "rfnd_1"
    assert refunded.notes["refund_reason"] == "Size did not fit"
    assert provider.refunds == [(payment.id, 2940)]
    assert checkout.orders.get_order(order.id).payment_status == PaymentStatus.REFUNDED

    with pytest.raises(InvalidTransitionError):
        checkout.gateway.refund_payment(payment.id)


def test_cod_refund_skips_provider() -> None:
    provider = _LiveProvider()
    checkout = build_checkout(provider=provider)
    order = checkout.place(method=PaymentMethodKind.COD)
    payment = checkout.gateway.start_payment(order.id, CodMethod()).payment

    refunded = checkout.gateway.refund_payment(payment.id)

    assert refunded.status == PaymentRecordStatus.REFUNDED
    assert provider.refunds == []


def test_bad_signature_fails_attempt() -> None:
    checkout = build_checkout(provider=_LiveProvider(signature_ok=False))
    order = checkout.place(method=PaymentMethodKind.CARD)
    payment = checkout.gateway.start_payment(order.id, CARD).payment
    assert payment.is_simulated is False
    assert payment.provider_order_id == f"order_{order.id}"

    result = checkout.gateway.reconcile_payment(
        ProviderResponse(
            success=True,
            provider_order_id=payment.provider_order_id,
            provider_payment_id="pay_live_1",
            provider_signature="forged",
        )
    )

    assert result.status == PaymentRecordStatus.FAILED
    assert result.error_code == "SIGNATURE_MISMATCH"
    stored = checkout.orders.get_order(order.id)
    assert stored.payment_status == PaymentStatus.FAILED
    assert stored.status == OrderStatus.PENDING


def test_provider_failure_records_nothing() -> None:
    checkout = build_checkout(provider=_LiveProvider(fail_create=True))
    order = checkout.place(method=PaymentMethodKind.CARD)

    with pytest.raises(PaymentProviderError):
        checkout.gateway.start_payment(order.id, CARD)

    assert checkout.gateway.payments_for_order(order.id) == []
    assert checkout.orders.get_order(order.id).payment_status == PaymentStatus.PENDING


def test_live_provider_cannot_be_simulated() -> None:
    checkout = build_checkout(provider=_LiveProvider())
    order = checkout.place(method=PaymentMethodKind.CARD)
    payment = checkout.gateway.start_payment(order.id, CARD).payment

    with pytest.raises(PaymentProviderError):
        checkout.gateway.simulate_callback(payment.transaction_ref)
