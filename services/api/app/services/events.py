from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1, EventV1

logger = logging.getLogger(__name__)

Subscriber = Callable[[EventV1], None]


class EventBus:
    """Synchronous observer channel between the engine and whoever renders or stores its state.

    Subscribers run in the publishing thread, in subscription order. A failing subscriber is
    logged and skipped; the publisher has already applied its state change and never sees it.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(
        self,
        *,
        entity_type: EntityTypeV1,
        entity_id: str,
        event_type: EventTypeV1,
        payload: dict[str, Any] | None = None,
    ) -> EventV1:
        event = EventV1(
            id=uuid4().hex,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            payload=payload or {},
            created_at=datetime.now(timezone.utc).isoformat(),
        )

        with self._lock:
            subscribers = list(self._subscribers)

        logger.debug("events.publish type=%s entity=%s", event_type.value, entity_id)
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception(
                    "events.subscriber_failed type=%s entity=%s subscriber=%r",
                    event_type.value,
                    entity_id,
                    subscriber,
                )
        return event


class RecordingSubscriber:
    """Keeps every event in memory. Handy in tests."""

    def __init__(self) -> None:
        self.events: list[EventV1] = []

    def __call__(self, event: EventV1) -> None:
        self.events.append(event)

    def types(self) -> list[EventTypeV1]:
        return [e.event_type for e in self.events]
