from __future__ import annotations

from fastapi import APIRouter, Depends
from services.api.app.db.deps import get_checkout_store
from services.api.app.models.notification import NotificationFeedResponse
from services.api.app.services.store import CheckoutStore

router = APIRouter()


def _feed(store: CheckoutStore, email: str) -> NotificationFeedResponse:
    return NotificationFeedResponse(
        unread_count=store.notifications.unread_count(email),
        notifications=store.notifications.for_customer(email),
    )


@router.get("/v1/notifications/{email}", response_model=NotificationFeedResponse)
def get_notifications(
    email: str, store: CheckoutStore = Depends(get_checkout_store)
) -> NotificationFeedResponse:
    return _feed(store, email)


@router.post(
    "/v1/notifications/{email}/{notification_id}/read", response_model=NotificationFeedResponse
)
def mark_notification_read(
    email: str, notification_id: str, store: CheckoutStore = Depends(get_checkout_store)
) -> NotificationFeedResponse:
    store.notifications.mark_read(email, notification_id)
    return _feed(store, email)


@router.delete("/v1/notifications/{email}", status_code=204)
def clear_notifications(email: str, store: CheckoutStore = Depends(get_checkout_store)) -> None:
    store.notifications.clear(email)
