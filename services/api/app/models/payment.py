from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class PaymentMethodKind(str, Enum):
    UPI = "upi"
    CARD = "card"
    NETBANKING = "netbanking"
    WALLET = "wallet"
    COD = "cod"


class PaymentRecordStatus(str, Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    REFUNDED = "refunded"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Method details collected by the checkout UI. Each variant carries only its own fields.


class UpiMethod(BaseModel):
    kind: Literal["upi"] = "upi"
    payer_vpa: str | None = None


class CardMethod(BaseModel):
    kind: Literal["card"] = "card"
    number: str
    expiry: str
    cvv: str
    holder_name: str


class NetBankingMethod(BaseModel):
    kind: Literal["netbanking"] = "netbanking"
    bank: str


class WalletMethod(BaseModel):
    kind: Literal["wallet"] = "wallet"
    wallet: str


class CodMethod(BaseModel):
    kind: Literal["cod"] = "cod"


PaymentMethodDetails = Annotated[
    Union[UpiMethod, CardMethod, NetBankingMethod, WalletMethod, CodMethod],
    Field(discriminator="kind"),
]


# What the UI needs to present the attempt to the customer.


class UpiInstructions(BaseModel):
    kind: Literal["upi"] = "upi"
    vpa: str
    payee_name: str
    amount: int
    currency: str
    note: str
    transaction_ref: str
    uri: str
    qr_code_url: str
    deep_links: dict[str, str]
    expires_at: datetime | None = None
    is_simulated: bool = False


class CheckoutInstructions(BaseModel):
    kind: Literal["checkout"] = "checkout"
    provider: str
    key_id: str | None = None
    provider_order_id: str
    transaction_ref: str
    amount_minor: int
    currency: str
    description: str
    prefill: dict[str, str] = Field(default_factory=dict)
    is_simulated: bool = False


class CodInstructions(BaseModel):
    kind: Literal["cod"] = "cod"
    transaction_ref: str
    amount: int
    currency: str
    message: str = "Pay in cash when your order is delivered."
    is_simulated: bool = False


PaymentInstructions = Annotated[
    Union[UpiInstructions, CheckoutInstructions, CodInstructions],
    Field(discriminator="kind"),
]


class Payment(BaseModel):
    id: str
    order_id: str
    transaction_ref: str

    amount: int
    currency: str
    method: PaymentMethodKind
    method_detail: str | None = None
    status: PaymentRecordStatus = PaymentRecordStatus.CREATED

    provider: str
    provider_order_id: str | None = None
    provider_payment_id: str | None = None
    provider_signature: str | None = None
    is_simulated: bool = False

    fee: int = 0
    tax: int = 0
    refunded_amount: int = 0

    error_code: str | None = None
    error_description: str | None = None

    created_at: datetime
    authorized_at: datetime | None = None
    captured_at: datetime | None = None
    refunded_at: datetime | None = None
    failed_at: datetime | None = None
    expires_at: datetime | None = None

    notes: dict[str, str] = Field(default_factory=dict)


class ProviderResponse(BaseModel):
    """Asynchronous result reported by a payment provider (webhook or client callback)."""

    success: bool
    transaction_ref: str | None = None
    order_id: str | None = None
    provider_order_id: str | None = None
    provider_payment_id: str | None = None
    provider_signature: str | None = None
    error_code: str | None = None
    error_description: str | None = None


class StartPaymentRequest(BaseModel):
    order_id: str
    method: PaymentMethodDetails


class CancelPaymentRequest(BaseModel):
    reason: str | None = None


class RefundRequest(BaseModel):
    reason: str | None = None
