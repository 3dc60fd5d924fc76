from __future__ import annotations

import threading
from uuid import uuid4

from packages.shared.schemas.events import EventTypeV1, EventV1
from services.api.app.models.notification import Notification, NotificationType

STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed!",
    "packed": "Your order is packed and ready to ship!",
    "shipped": "Your order is on its way!",
    "delivered": "Your order has been delivered!",
    "cancelled": "Your order has been cancelled.",
}


class NotificationFeed:
    """Customer facing messages derived from engine events, keyed by customer email."""

    def __init__(self) -> None:
        self._feeds: dict[str, list[Notification]] = {}
        self._lock = threading.Lock()

    def __call__(self, event: EventV1) -> None:
        built = _notification_for(event)
        if built is None:
            return

        email, notification = built
        with self._lock:
            self._feeds.setdefault(email, []).insert(0, notification)

    def for_customer(self, email: str) -> list[Notification]:
        with self._lock:
            return [n.model_copy() for n in self._feeds.get(email, [])]

    def unread_count(self, email: str) -> int:
        with self._lock:
            return sum(1 for n in self._feeds.get(email, []) if not n.is_read)

    def mark_read(self, email: str, notification_id: str) -> None:
        with self._lock:
            for n in self._feeds.get(email, []):
                if n.id == notification_id:
                    n.is_read = True

    def clear(self, email: str) -> None:
        with self._lock:
            self._feeds.pop(email, None)


def _notification_for(event: EventV1) -> tuple[str, Notification] | None:
    if event.event_type in (EventTypeV1.ORDER_CREATED, EventTypeV1.ORDER_STATUS_CHANGED):
        order = event.payload["order"]
        email = order["customer"]["email"]
        if event.event_type == EventTypeV1.ORDER_CREATED:
            title = "Order Placed!"
            message = f"Your order #{order['id']} has been placed and is being processed."
            kind = NotificationType.ORDER
        else:
            status = event.payload.get("current", order["status"])
            title = "Order Update"
            message = STATUS_MESSAGES.get(status, f"Order status updated to {status}")
            kind = NotificationType.DELIVERY if status == "delivered" else NotificationType.ORDER
        return email, _build(kind, title, message, order["id"], event.created_at)

    if event.event_type in (
        EventTypeV1.PAYMENT_CAPTURED,
        EventTypeV1.PAYMENT_FAILED,
        EventTypeV1.PAYMENT_EXPIRED,
        EventTypeV1.PAYMENT_REFUNDED,
    ):
        payment = event.payload["payment"]
        email = payment.get("notes", {}).get("customer_email")
        if not email:
            return None

        amount = f"{payment['currency']} {payment['amount']}"
        if event.event_type == EventTypeV1.PAYMENT_CAPTURED:
            if payment["method"] == "cod":
                title, message = "Cash on Delivery", f"Pay {amount} when your order arrives."
            else:
                title, message = "Payment Received", f"We received {amount} for your order."
        elif event.event_type == EventTypeV1.PAYMENT_REFUNDED:
            title, message = "Refund Initiated", f"{amount} is on its way back to you."
        else:
            title = "Payment Failed"
            message = payment.get("error_description") or "Payment failed. Please try again."
        return email, _build(
            NotificationType.PAYMENT, title, message, payment["order_id"], event.created_at
        )

    return None


def _build(
    kind: NotificationType, title: str, message: str, order_id: str, created_at: str
) -> Notification:
    return Notification(
        id=f"notif_{uuid4().hex[:12]}",
        type=kind,
        title=title,
        message=message,
        created_at=created_at,
        order_id=order_id,
    )
