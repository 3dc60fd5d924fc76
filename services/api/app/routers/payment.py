from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException
from packages.shared.schemas.checkout_card_v1 import (
    CheckoutActionTypeV1,
    CheckoutActionV1,
    CheckoutCardTypeV1,
    CheckoutCardV1,
)
from services.api.app.db.deps import get_checkout_store
from services.api.app.models.payment import (
    CancelPaymentRequest,
    Payment,
    PaymentRecordStatus,
    ProviderResponse,
    RefundRequest,
    StartPaymentRequest,
)
from services.api.app.routers.errors import raise_checkout_http_error, status_for
from services.api.app.services.errors import CheckoutError, IncompleteAddressError
from services.api.app.services.payments import PaymentAttempt
from services.api.app.services.store import CheckoutStore

logger = logging.getLogger(__name__)

router = APIRouter()

_RETRY = CheckoutActionV1(type=CheckoutActionTypeV1.RETRY, label="Try again")
_EDIT_CART = CheckoutActionV1(type=CheckoutActionTypeV1.EDIT_CART, label="Back to cart")


def _raise_payment_http_error(e: Exception, order_id: str | None = None) -> NoReturn:
    """Checkout errors carry a FAILED card so the UI knows whether to offer a retry."""

    if not isinstance(e, CheckoutError) or order_id is None:
        raise_checkout_http_error(e)

    if e.retryable:
        actions = [_RETRY]
    elif isinstance(e, IncompleteAddressError):
        actions = [
            CheckoutActionV1(
                type=CheckoutActionTypeV1.EDIT_ADDRESS, label="Edit address", payload={}
            )
        ]
    else:
        actions = [_EDIT_CART]

    card = CheckoutCardV1(
        type=CheckoutCardTypeV1.FAILED,
        title="Payment failed",
        summary=str(e),
        order_id=order_id,
        body={"retryable": e.retryable, "error": type(e).__name__},
        actions=actions,
    )
    raise HTTPException(status_code=status_for(e), detail=card.model_dump(mode="json")) from e


def _attempt_card(attempt: PaymentAttempt) -> CheckoutCardV1:
    payment = attempt.payment
    body = attempt.instructions.model_dump(mode="json")
    warnings = ["Simulated payment. No money will move."] if payment.is_simulated else []

    if payment.status == PaymentRecordStatus.CAPTURED:
        return CheckoutCardV1(
            type=CheckoutCardTypeV1.DONE,
            title="Order placed",
            summary=body.get("message", "Payment received."),
            order_id=payment.order_id,
            payment_id=payment.id,
            transaction_ref=payment.transaction_ref,
            provider=payment.provider,
            is_simulated=payment.is_simulated,
            amount=payment.amount,
            currency=payment.currency,
            body=body,
            actions=[],
            warnings=warnings,
        )

    return CheckoutCardV1(
        type=CheckoutCardTypeV1.PAYMENT_PENDING,
        title=f"Pay {payment.currency} {payment.amount}",
        summary=f"Complete the {payment.method.value.upper()} payment for {payment.order_id}.",
        order_id=payment.order_id,
        payment_id=payment.id,
        transaction_ref=payment.transaction_ref,
        provider=payment.provider,
        is_simulated=payment.is_simulated,
        amount=payment.amount,
        currency=payment.currency,
        body=body,
        actions=[
            CheckoutActionV1(
                type=CheckoutActionTypeV1.PAY,
                label="Pay now",
                payload={"transaction_ref": payment.transaction_ref},
            ),
            CheckoutActionV1(
                type=CheckoutActionTypeV1.CANCEL,
                label="Cancel",
                payload={"transaction_ref": payment.transaction_ref},
            ),
        ],
        warnings=warnings,
    )


def _result_card(payment: Payment) -> CheckoutCardV1:
    common = dict(
        order_id=payment.order_id,
        payment_id=payment.id,
        transaction_ref=payment.transaction_ref,
        provider=payment.provider,
        is_simulated=payment.is_simulated,
        amount=payment.amount,
        currency=payment.currency,
        body={"payment": payment.model_dump(mode="json")},
    )

    if payment.status == PaymentRecordStatus.CAPTURED:
        return CheckoutCardV1(
            type=CheckoutCardTypeV1.DONE,
            title="Payment successful",
            summary=f"Order {payment.order_id} is confirmed.",
            actions=[],
            **common,
        )

    if payment.status == PaymentRecordStatus.REFUNDED:
        return CheckoutCardV1(
            type=CheckoutCardTypeV1.DONE,
            title="Refund issued",
            summary=f"{payment.currency} {payment.refunded_amount} will be returned to you.",
            actions=[],
            **common,
        )

    if payment.status == PaymentRecordStatus.EXPIRED:
        return CheckoutCardV1(
            type=CheckoutCardTypeV1.EXPIRED,
            title="Payment window expired",
            summary=payment.error_description or "Payment window expired.",
            actions=[_RETRY],
            **common,
        )

    if payment.status == PaymentRecordStatus.CANCELLED:
        return CheckoutCardV1(
            type=CheckoutCardTypeV1.CANCELLED,
            title="Payment cancelled",
            summary=payment.error_description or "Payment cancelled.",
            actions=[_RETRY],
            **common,
        )

    return CheckoutCardV1(
        type=CheckoutCardTypeV1.FAILED,
        title="Payment failed",
        summary=payment.error_description or "Payment failed. Please try again.",
        actions=[_RETRY],
        **common,
    )


@router.post("/v1/payments", response_model=CheckoutCardV1)
def start_payment(
    payload: StartPaymentRequest, store: CheckoutStore = Depends(get_checkout_store)
) -> CheckoutCardV1:
    try:
        attempt = store.gateway.start_payment(payload.order_id, payload.method)
    except Exception as e:
        _raise_payment_http_error(e, payload.order_id)

    return _attempt_card(attempt)


@router.post("/v1/payments/callback", response_model=CheckoutCardV1)
def payment_callback(
    payload: ProviderResponse, store: CheckoutStore = Depends(get_checkout_store)
) -> CheckoutCardV1:
    try:
        payment = store.gateway.reconcile_payment(payload)
    except Exception as e:
        _raise_payment_http_error(e, payload.order_id)

    return _result_card(payment)


@router.post("/v1/payments/{transaction_ref}/cancel", response_model=CheckoutCardV1)
def cancel_payment(
    transaction_ref: str,
    payload: CancelPaymentRequest | None = None,
    store: CheckoutStore = Depends(get_checkout_store),
) -> CheckoutCardV1:
    reason = payload.reason if payload else None
    try:
        payment = store.gateway.cancel_payment(transaction_ref, reason)
    except Exception as e:
        raise_checkout_http_error(e)

    return _result_card(payment)


@router.post("/v1/payments/{transaction_ref}/simulate", response_model=CheckoutCardV1)
def simulate_payment(
    transaction_ref: str, store: CheckoutStore = Depends(get_checkout_store)
) -> CheckoutCardV1:
    try:
        gateway = store.gateway
    except Exception as e:
        raise_checkout_http_error(e)

    if not gateway.is_simulated:
        raise HTTPException(status_code=409, detail="Payment provider is not simulated")

    try:
        payment = gateway.simulate_callback(transaction_ref)
    except Exception as e:
        raise_checkout_http_error(e)

    logger.debug("payments.simulated ref=%s status=%s", transaction_ref, payment.status.value)
    return _result_card(payment)


@router.post("/v1/payments/{payment_id}/refund", response_model=CheckoutCardV1)
def refund_payment(
    payment_id: str,
    payload: RefundRequest | None = None,
    store: CheckoutStore = Depends(get_checkout_store),
) -> CheckoutCardV1:
    reason = payload.reason if payload else None
    try:
        payment = store.gateway.refund_payment(payment_id, reason)
    except Exception as e:
        raise_checkout_http_error(e)

    return _result_card(payment)
