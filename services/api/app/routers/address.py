from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.db.deps import get_checkout_store
from services.api.app.models.order import Address, AddressUpdate
from services.api.app.routers.errors import raise_checkout_http_error
from services.api.app.services.errors import CheckoutError, IncompleteAddressError
from services.api.app.services.store import CheckoutStore

router = APIRouter()


@router.get("/v1/users/{user_id}/addresses", response_model=list[Address])
def list_addresses(
    user_id: str, store: CheckoutStore = Depends(get_checkout_store)
) -> list[Address]:
    return store.addresses.addresses_for(user_id)


@router.post("/v1/users/{user_id}/addresses", response_model=Address)
def add_address(
    user_id: str, payload: Address, store: CheckoutStore = Depends(get_checkout_store)
) -> Address:
    missing = payload.missing_fields()
    if missing:
        raise_checkout_http_error(IncompleteAddressError(missing))
    return store.addresses.add(user_id, payload)


@router.patch("/v1/users/{user_id}/addresses/{address_id}", response_model=Address)
def update_address(
    user_id: str,
    address_id: str,
    payload: AddressUpdate,
    store: CheckoutStore = Depends(get_checkout_store),
) -> Address:
    try:
        return store.addresses.update(
            user_id, address_id, payload.model_dump(exclude_unset=True)
        )
    except CheckoutError as e:
        raise_checkout_http_error(e)


@router.post("/v1/users/{user_id}/addresses/{address_id}/default", response_model=Address)
def set_default_address(
    user_id: str, address_id: str, store: CheckoutStore = Depends(get_checkout_store)
) -> Address:
    try:
        return store.addresses.set_default(user_id, address_id)
    except CheckoutError as e:
        raise_checkout_http_error(e)


@router.delete("/v1/users/{user_id}/addresses/{address_id}", status_code=204)
def delete_address(
    user_id: str, address_id: str, store: CheckoutStore = Depends(get_checkout_store)
) -> None:
    try:
        store.addresses.delete(user_id, address_id)
    except CheckoutError as e:
        raise_checkout_http_error(e)
