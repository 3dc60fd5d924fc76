from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from services.api.app.db.deps import get_db
from services.api.app.db.models import EventLog, OrderRecord, PaymentRecord
from services.api.app.models.audit import (
    EventOut,
    OrderAuditDetail,
    OrderAuditItem,
    PaymentAuditItem,
)
from sqlalchemy.orm import Session

router = APIRouter()


def _event_out(row: EventLog) -> EventOut:
    return EventOut(
        id=row.id,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        event_type=row.event_type,
        payload=row.event_payload_json,
        created_at=row.created_at.isoformat(),
    )


def _order_item(row: OrderRecord) -> OrderAuditItem:
    return OrderAuditItem(
        order_id=row.id,
        customer_email=row.customer_email,
        status=row.status,
        payment_status=row.payment_status,
        payment_method=row.payment_method,
        total=row.total,
        created_at=row.created_at.isoformat(),
        updated_at=row.updated_at.isoformat(),
    )


@router.get("/v1/events", response_model=list[EventOut])
def list_events(
    entity_id: str | None = None,
    entity_type: str | None = None,
    limit: int = 200,
    db: Session = Depends(get_db),
) -> list[EventOut]:
    query = db.query(EventLog)
    if entity_id:
        query = query.filter(EventLog.entity_id == entity_id)
    if entity_type:
        query = query.filter(EventLog.entity_type == entity_type)

    rows = query.order_by(EventLog.created_at.asc()).limit(min(limit, 1000)).all()
    return [_event_out(r) for r in rows]


@router.get("/v1/audit/orders", response_model=list[OrderAuditItem])
def list_order_audit(email: str, db: Session = Depends(get_db)) -> list[OrderAuditItem]:
    rows = (
        db.query(OrderRecord)
        .filter(OrderRecord.customer_email == email)
        .order_by(OrderRecord.created_at.desc())
        .limit(200)
        .all()
    )
    return [_order_item(r) for r in rows]


@router.get("/v1/audit/orders/{order_id}", response_model=OrderAuditDetail)
def get_order_audit(order_id: str, db: Session = Depends(get_db)) -> OrderAuditDetail:
    order = db.get(OrderRecord, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    payments = (
        db.query(PaymentRecord)
        .filter(PaymentRecord.order_id == order_id)
        .order_by(PaymentRecord.created_at.asc())
        .all()
    )

    entity_ids = [order_id, *(p.id for p in payments)]
    events = (
        db.query(EventLog)
        .filter(EventLog.entity_id.in_(entity_ids))
        .order_by(EventLog.created_at.asc())
        .all()
    )

    return OrderAuditDetail(
        order=_order_item(order),
        order_payload_json=order.payload_json,
        payments=[
            PaymentAuditItem(
                payment_id=p.id,
                order_id=p.order_id,
                transaction_ref=p.transaction_ref,
                status=p.status,
                method=p.method,
                amount=p.amount,
                is_simulated=p.is_simulated,
                created_at=p.created_at.isoformat(),
            )
            for p in payments
        ],
        events=[_event_out(e) for e in events],
    )
