from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from packages.shared.schemas.events import EntityTypeV1, EventV1
from services.api.app.db.database import db_session
from services.api.app.db.models import EventLog, OrderRecord, PaymentRecord
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class EventLogSink:
    """EventBus subscriber that appends every event and keeps the latest entity snapshots."""

    def __init__(self, session_factory: Callable[[], Session] = db_session) -> None:
        self._session_factory = session_factory

    def __call__(self, event: EventV1) -> None:
        db = self._session_factory()
        try:
            db.add(
                EventLog(
                    id=event.id,
                    entity_type=event.entity_type.value,
                    entity_id=event.entity_id,
                    event_type=event.event_type.value,
                    event_payload_json=event.payload,
                    created_at=datetime.fromisoformat(event.created_at),
                )
            )

            if event.entity_type == EntityTypeV1.ORDER and "order" in event.payload:
                _upsert_order(db, event.payload["order"])
            elif event.entity_type == EntityTypeV1.PAYMENT and "payment" in event.payload:
                _upsert_payment(db, event.payload["payment"])

            db.commit()
        except Exception:
            db.rollback()
            logger.exception("db.sink failed event=%s type=%s", event.id, event.event_type.value)
            raise
        finally:
            db.close()


def _upsert_order(db: Session, order: dict) -> None:
    row = db.get(OrderRecord, order["id"])
    if row is None:
        row = OrderRecord(
            id=order["id"],
            customer_email=order["customer"]["email"],
            created_at=datetime.fromisoformat(order["created_at"]),
        )
        db.add(row)

    row.status = order["status"]
    row.payment_status = order["payment_status"]
    row.payment_method = order["payment_method"]
    row.total = order["total"]
    row.payload_json = order
    row.updated_at = datetime.fromisoformat(order["updated_at"])


def _upsert_payment(db: Session, payment: dict) -> None:
    row = db.get(PaymentRecord, payment["id"])
    if row is None:
        row = PaymentRecord(
            id=payment["id"],
            order_id=payment["order_id"],
            transaction_ref=payment["transaction_ref"],
            created_at=datetime.fromisoformat(payment["created_at"]),
        )
        db.add(row)

    row.status = payment["status"]
    row.method = payment["method"]
    row.amount = payment["amount"]
    row.is_simulated = payment["is_simulated"]
    row.payload_json = payment
