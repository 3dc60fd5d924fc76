from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException
from services.api.app.services.errors import (
    AddressNotFoundError,
    CheckoutError,
    EmptyCartError,
    ExpiredPaymentError,
    IncompleteAddressError,
    IncompletePaymentDetailsError,
    InvalidQuantityError,
    InvalidTransitionError,
    OrderNotFoundError,
    OrderNotPayableError,
    PaymentInitializationError,
    PaymentLimitError,
    PaymentNotFoundError,
    SessionNotFoundError,
    UnknownTransactionError,
)
from services.api.app.services.payment_base import PaymentProviderError, PaymentSdkMissingError

_STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (InvalidQuantityError, 422),
    (IncompleteAddressError, 422),
    (IncompletePaymentDetailsError, 422),
    (PaymentLimitError, 422),
    (EmptyCartError, 409),
    (InvalidTransitionError, 409),
    (OrderNotPayableError, 409),
    (SessionNotFoundError, 404),
    (OrderNotFoundError, 404),
    (PaymentNotFoundError, 404),
    (AddressNotFoundError, 404),
    (UnknownTransactionError, 404),
    (ExpiredPaymentError, 410),
    (PaymentInitializationError, 503),
    (PaymentSdkMissingError, 503),
    (PaymentProviderError, 502),
)


def status_for(e: Exception) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(e, error_type):
            return status_code
    if isinstance(e, CheckoutError):
        return 400
    return 500


def raise_checkout_http_error(e: Exception) -> NoReturn:
    status_code = status_for(e)
    if status_code == 500:
        if isinstance(e, ValueError):
            raise HTTPException(status_code=500, detail=str(e)) from e
        raise HTTPException(status_code=500, detail="Internal Server Error") from e

    raise HTTPException(status_code=status_code, detail=str(e)) from e
