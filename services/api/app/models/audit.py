from __future__ import annotations

from pydantic import BaseModel, Field


class EventOut(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    event_type: str
    payload: dict = Field(default_factory=dict)
    created_at: str


class OrderAuditItem(BaseModel):
    order_id: str
    customer_email: str
    status: str
    payment_status: str
    payment_method: str
    total: int
    created_at: str
    updated_at: str


class PaymentAuditItem(BaseModel):
    payment_id: str
    order_id: str
    transaction_ref: str
    status: str
    method: str
    amount: int
    is_simulated: bool
    created_at: str


class OrderAuditDetail(BaseModel):
    order: OrderAuditItem
    order_payload_json: dict = Field(default_factory=dict)
    payments: list[PaymentAuditItem] = Field(default_factory=list)
    events: list[EventOut] = Field(default_factory=list)
