from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.db.deps import get_checkout_store
from services.api.app.models.order import AdvanceStatusRequest, CreateOrderRequest, Order
from services.api.app.models.payment import Payment
from services.api.app.routers.errors import raise_checkout_http_error
from services.api.app.services.store import CheckoutStore

router = APIRouter()


@router.post("/v1/orders", response_model=Order)
def create_order(
    payload: CreateOrderRequest, store: CheckoutStore = Depends(get_checkout_store)
) -> Order:
    try:
        return store.place_order(
            payload.session_id,
            payload.customer,
            address=payload.address,
            user_id=payload.user_id,
            payment_method=payload.payment_method,
            notes=payload.notes,
        )
    except Exception as e:
        raise_checkout_http_error(e)


@router.get("/v1/orders", response_model=list[Order])
def list_orders(
    email: str | None = None, store: CheckoutStore = Depends(get_checkout_store)
) -> list[Order]:
    return store.orders.list_orders(customer_email=email)


@router.get("/v1/orders/{order_id}", response_model=Order)
def get_order(order_id: str, store: CheckoutStore = Depends(get_checkout_store)) -> Order:
    try:
        return store.orders.get_order(order_id)
    except Exception as e:
        raise_checkout_http_error(e)


@router.post("/v1/orders/{order_id}/status", response_model=Order)
def advance_status(
    order_id: str,
    payload: AdvanceStatusRequest,
    store: CheckoutStore = Depends(get_checkout_store),
) -> Order:
    try:
        return store.orders.advance_status(
            order_id, payload.status, notes=payload.notes, location=payload.location
        )
    except Exception as e:
        raise_checkout_http_error(e)


@router.get("/v1/orders/{order_id}/payments", response_model=list[Payment])
def list_order_payments(
    order_id: str, store: CheckoutStore = Depends(get_checkout_store)
) -> list[Payment]:
    try:
        store.orders.get_order(order_id)
        return store.gateway.payments_for_order(order_id)
    except Exception as e:
        raise_checkout_http_error(e)
