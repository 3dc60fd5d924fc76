from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class NotificationType(str, Enum):
    ORDER = "order"
    PAYMENT = "payment"
    DELIVERY = "delivery"


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    created_at: str
    order_id: str | None = None


class NotificationFeedResponse(BaseModel):
    unread_count: int
    notifications: list[Notification]
