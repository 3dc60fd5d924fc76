from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from services.api.app.models.cart import LineItem
from services.api.app.models.payment import PaymentMethodKind


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class AddressType(str, Enum):
    HOME = "home"
    OFFICE = "office"
    OTHER = "other"


class Address(BaseModel):
    id: str | None = None
    type: AddressType | None = None
    name: str | None = None
    street: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    landmark: str | None = None
    phone: str | None = None
    is_default: bool = False

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("street", "city", "state", "pincode")
            if not getattr(self, name).strip()
        ]


class AddressUpdate(BaseModel):
    type: AddressType | None = None
    name: str | None = None
    street: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    landmark: str | None = None
    phone: str | None = None
    is_default: bool | None = None


class CustomerInfo(BaseModel):
    name: str
    email: str
    phone: str = ""


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    timestamp: datetime
    location: str | None = None
    notes: str | None = None


class Order(BaseModel):
    id: str
    customer: CustomerInfo
    items: list[LineItem]

    subtotal: int
    shipping: int
    tax: int
    total: int

    status: OrderStatus = OrderStatus.PENDING
    payment_method: PaymentMethodKind
    payment_status: PaymentStatus = PaymentStatus.PENDING
    address: Address

    created_at: datetime
    updated_at: datetime
    status_history: list[OrderStatusUpdate] = Field(default_factory=list)

    tracking_number: str | None = None
    estimated_delivery: datetime | None = None
    delivery_date: datetime | None = None
    notes: str | None = None


class CreateOrderRequest(BaseModel):
    session_id: str
    # Omit to ship to the user's default saved address.
    address: Address | None = None
    user_id: str | None = None
    customer: CustomerInfo
    payment_method: PaymentMethodKind = PaymentMethodKind.UPI
    notes: str | None = None


class AdvanceStatusRequest(BaseModel):
    status: OrderStatus
    notes: str | None = None
    location: str | None = None
