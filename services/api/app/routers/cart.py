from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.db.deps import get_checkout_store
from services.api.app.models.cart import (
    AddItemRequest,
    CartView,
    RemoveItemRequest,
    SessionResponse,
    UpdateQuantityRequest,
)
from services.api.app.routers.errors import raise_checkout_http_error
from services.api.app.services.cart import CartStore
from services.api.app.services.errors import CheckoutError
from services.api.app.services.store import CheckoutStore

router = APIRouter()


def _cart_view(session_id: str, cart: CartStore) -> CartView:
    return CartView(
        session_id=session_id,
        items=cart.items,
        item_count=cart.count,
        is_open=cart.is_open,
        totals=cart.totals(),
    )


def _cart(store: CheckoutStore, session_id: str) -> CartStore:
    try:
        return store.get_session(session_id).cart
    except CheckoutError as e:
        raise_checkout_http_error(e)


@router.post("/v1/sessions", response_model=SessionResponse)
def open_session(store: CheckoutStore = Depends(get_checkout_store)) -> SessionResponse:
    session = store.open_session()
    return SessionResponse(session_id=session.session_id)


@router.delete("/v1/sessions/{session_id}", status_code=204)
def end_session(session_id: str, store: CheckoutStore = Depends(get_checkout_store)) -> None:
    try:
        store.end_session(session_id)
    except CheckoutError as e:
        raise_checkout_http_error(e)


@router.get("/v1/cart/{session_id}", response_model=CartView)
def get_cart(session_id: str, store: CheckoutStore = Depends(get_checkout_store)) -> CartView:
    return _cart_view(session_id, _cart(store, session_id))


@router.post("/v1/cart/{session_id}/items", response_model=CartView)
def add_item(
    session_id: str,
    payload: AddItemRequest,
    store: CheckoutStore = Depends(get_checkout_store),
) -> CartView:
    cart = _cart(store, session_id)
    try:
        cart.add_item(payload.product, payload.size, payload.color, payload.quantity)
    except CheckoutError as e:
        raise_checkout_http_error(e)
    return _cart_view(session_id, cart)


@router.patch("/v1/cart/{session_id}/items", response_model=CartView)
def update_quantity(
    session_id: str,
    payload: UpdateQuantityRequest,
    store: CheckoutStore = Depends(get_checkout_store),
) -> CartView:
    cart = _cart(store, session_id)
    cart.update_quantity(payload.product_id, payload.size, payload.color, payload.quantity)
    return _cart_view(session_id, cart)


@router.post("/v1/cart/{session_id}/items/remove", response_model=CartView)
def remove_item(
    session_id: str,
    payload: RemoveItemRequest,
    store: CheckoutStore = Depends(get_checkout_store),
) -> CartView:
    cart = _cart(store, session_id)
    cart.remove_item(payload.product_id, payload.size, payload.color)
    return _cart_view(session_id, cart)


@router.post("/v1/cart/{session_id}/clear", response_model=CartView)
def clear_cart(session_id: str, store: CheckoutStore = Depends(get_checkout_store)) -> CartView:
    cart = _cart(store, session_id)
    cart.clear()
    return _cart_view(session_id, cart)
