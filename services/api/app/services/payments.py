from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.models.order import Order, OrderStatus, PaymentStatus
from services.api.app.models.payment import (
    CardMethod,
    CheckoutInstructions,
    CodInstructions,
    NetBankingMethod,
    Payment,
    PaymentInstructions,
    PaymentMethodDetails,
    PaymentMethodKind,
    PaymentRecordStatus,
    ProviderResponse,
    UpiMethod,
    WalletMethod,
)
from services.api.app.services.deadlines import (
    DeadlineHandle,
    DeadlineScheduler,
    ThreadingDeadlineScheduler,
)
from services.api.app.services.errors import (
    ExpiredPaymentError,
    IncompletePaymentDetailsError,
    InvalidTransitionError,
    OrderNotPayableError,
    PaymentLimitError,
    PaymentNotFoundError,
    UnknownTransactionError,
)
from services.api.app.services.events import EventBus
from services.api.app.services.orders import Clock, OrderEngine, utc_now
from services.api.app.services.payment_base import PaymentProvider, PaymentProviderError
from services.api.app.services.pricing import round_half_up
from services.api.app.services.upi import build_upi_instructions

logger = logging.getLogger(__name__)

GST_RATE = Decimal("0.18")

OPEN_STATUSES = frozenset({PaymentRecordStatus.CREATED, PaymentRecordStatus.AUTHORIZED})


@dataclass(frozen=True, slots=True)
class MethodPolicy:
    max_amount: int
    fee_rate: Decimal


METHOD_POLICIES: dict[PaymentMethodKind, MethodPolicy] = {
    PaymentMethodKind.UPI: MethodPolicy(max_amount=100000, fee_rate=Decimal("0")),
    PaymentMethodKind.CARD: MethodPolicy(max_amount=500000, fee_rate=Decimal("0.025")),
    PaymentMethodKind.NETBANKING: MethodPolicy(max_amount=200000, fee_rate=Decimal("0")),
    PaymentMethodKind.WALLET: MethodPolicy(max_amount=50000, fee_rate=Decimal("0.015")),
    PaymentMethodKind.COD: MethodPolicy(max_amount=10000, fee_rate=Decimal("0")),
}

_REQUIRED_FIELDS: dict[type, tuple[str, ...]] = {
    CardMethod: ("number", "expiry", "cvv", "holder_name"),
    NetBankingMethod: ("bank",),
    WalletMethod: ("wallet",),
}


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    vpa: str = "merchant@paytm"
    payee_name: str = "looom.shop"
    currency: str = "INR"
    upi_timeout_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        return cls(
            vpa=os.getenv("LOOOM_UPI_VPA", "merchant@paytm").strip(),
            payee_name=os.getenv("LOOOM_PAYEE_NAME", "looom.shop").strip(),
            currency=os.getenv("LOOOM_CURRENCY", "INR").strip().upper(),
            upi_timeout_seconds=float(os.getenv("LOOOM_UPI_TIMEOUT_SECONDS", "300")),
        )


@dataclass(frozen=True, slots=True)
class PaymentAttempt:
    payment: Payment
    instructions: PaymentInstructions


def new_transaction_ref() -> str:
    return f"TXN{uuid4().hex[:16].upper()}"


class PaymentGateway:
    """Turns orders into provider interactions and provider callbacks into Payment records.

    Each attempt is resolved exactly once, by whichever comes first: the provider callback,
    the UPI deadline, or the customer closing the payment UI. Later resolutions are no-ops
    (timer) or rejected (callbacks). A retry always creates a new Payment.

    Lock order: the gateway lock is taken before the order engine lock, never the reverse.
    """

    def __init__(
        self,
        orders: OrderEngine,
        provider: PaymentProvider,
        *,
        config: GatewayConfig | None = None,
        scheduler: DeadlineScheduler | None = None,
        clock: Clock = utc_now,
        bus: EventBus | None = None,
    ) -> None:
        self._orders = orders
        self._provider = provider
        self._config = config or GatewayConfig()
        self._scheduler = scheduler or ThreadingDeadlineScheduler()
        self._clock = clock
        self._bus = bus

        self._payments: dict[str, Payment] = {}
        self._by_ref: dict[str, str] = {}
        self._by_provider_order: dict[str, str] = {}
        self._deadlines: dict[str, DeadlineHandle] = {}
        self._lock = threading.RLock()

    @property
    def provider_name(self) -> str:
        return self._provider.name

    @property
    def is_simulated(self) -> bool:
        return self._provider.is_simulated

    def start_payment(self, order_id: str, method: PaymentMethodDetails) -> PaymentAttempt:
        _require_complete(method)
        kind = PaymentMethodKind(method.kind)

        with self._lock:
            order = self._orders.get_order(order_id)
            if order.status == OrderStatus.CANCELLED:
                raise OrderNotPayableError(order_id, "order is cancelled")
            if order.payment_status in (PaymentStatus.COMPLETED, PaymentStatus.REFUNDED):
                raise OrderNotPayableError(order_id, "order is already paid")

            policy = METHOD_POLICIES[kind]
            if order.total > policy.max_amount:
                raise PaymentLimitError(kind.value, order.total, policy.max_amount)

            self._release_open_attempts(order_id)

            now = self._clock()
            fee = round_half_up(Decimal(order.total) * policy.fee_rate)
            payment = Payment(
                id=f"pay_{uuid4().hex[:14]}",
                order_id=order.id,
                transaction_ref=new_transaction_ref(),
                amount=order.total,
                currency=self._config.currency,
                method=kind,
                method_detail=_describe(method),
                provider="COD" if kind == PaymentMethodKind.COD else self._provider.name,
                is_simulated=kind != PaymentMethodKind.COD and self._provider.is_simulated,
                fee=fee,
                tax=round_half_up(Decimal(fee) * GST_RATE),
                created_at=now,
                notes={"order_id": order.id, "customer_email": order.customer.email},
            )

            if kind == PaymentMethodKind.COD:
                return self._start_cod(order, payment)

            # Provider errors propagate before anything is recorded.
            session = self._provider.create_session(order, payment)
            payment.provider_order_id = session.provider_order_id
            if kind == PaymentMethodKind.UPI:
                payment.expires_at = now + timedelta(seconds=self._config.upi_timeout_seconds)

            self._store(payment)
            self._orders.update_payment_status(
                order.id, PaymentStatus.PROCESSING, payment_method=kind
            )
            logger.info(
                "payments.started ref=%s order=%s method=%s amount=%s simulated=%s",
                payment.transaction_ref,
                order.id,
                kind.value,
                payment.amount,
                payment.is_simulated,
            )
            self._publish(EventTypeV1.PAYMENT_STARTED, payment)

            if kind == PaymentMethodKind.UPI:
                ref = payment.transaction_ref
                self._deadlines[ref] = self._scheduler.schedule(
                    self._config.upi_timeout_seconds, lambda: self.expire_payment(ref)
                )
                instructions: PaymentInstructions = build_upi_instructions(
                    vpa=self._config.vpa,
                    payee_name=self._config.payee_name,
                    amount=payment.amount,
                    currency=payment.currency,
                    order_id=order.id,
                    transaction_ref=ref,
                    expires_at=payment.expires_at,
                    is_simulated=payment.is_simulated,
                )
            else:
                instructions = CheckoutInstructions(
                    provider=self._provider.name,
                    key_id=session.key_id,
                    provider_order_id=session.provider_order_id,
                    transaction_ref=payment.transaction_ref,
                    amount_minor=payment.amount * 100,
                    currency=payment.currency,
                    description=f"Payment for Order #{order.id}",
                    prefill={
                        "name": order.customer.name,
                        "email": order.customer.email,
                        "contact": order.customer.phone,
                    },
                    is_simulated=payment.is_simulated,
                )

            return PaymentAttempt(payment=payment.model_copy(deep=True), instructions=instructions)

    def reconcile_payment(self, response: ProviderResponse) -> Payment:
        with self._lock:
            payment = self._match(response)
            ref = payment.transaction_ref

            if payment.status == PaymentRecordStatus.EXPIRED:
                logger.warning("payments.late_callback ref=%s", ref)
                raise ExpiredPaymentError(ref)

            if payment.status not in OPEN_STATUSES:
                if response.success and payment.status == PaymentRecordStatus.CAPTURED:
                    logger.info("payments.duplicate_callback ref=%s", ref)
                    return payment.model_copy(deep=True)
                if not response.success and payment.status == PaymentRecordStatus.FAILED:
                    logger.info("payments.duplicate_callback ref=%s", ref)
                    return payment.model_copy(deep=True)
                raise UnknownTransactionError(ref)

            if self._is_overdue(payment):
                self._expire(payment)
                raise ExpiredPaymentError(ref)

            if not response.success:
                return self._fail(
                    payment,
                    PaymentRecordStatus.FAILED,
                    code=response.error_code or "PAYMENT_FAILED",
                    description=response.error_description or "Payment failed. Please try again.",
                    event_type=EventTypeV1.PAYMENT_FAILED,
                )

            if not self._provider.verify(response):
                return self._fail(
                    payment,
                    PaymentRecordStatus.FAILED,
                    code="SIGNATURE_MISMATCH",
                    description="Payment signature verification failed.",
                    event_type=EventTypeV1.PAYMENT_FAILED,
                )

            return self._capture(payment, response)

    def cancel_payment(self, transaction_ref: str, reason: str | None = None) -> Payment:
        """The customer closed the payment UI before any callback arrived."""

        with self._lock:
            payment = self._by_reference(transaction_ref)
            if payment.status == PaymentRecordStatus.EXPIRED:
                raise ExpiredPaymentError(transaction_ref)
            if payment.status not in OPEN_STATUSES:
                raise UnknownTransactionError(transaction_ref)

            return self._fail(
                payment,
                PaymentRecordStatus.CANCELLED,
                code="PAYMENT_CANCELLED",
                description=reason or "Payment cancelled by user",
                event_type=EventTypeV1.PAYMENT_CANCELLED,
            )

    def expire_payment(self, transaction_ref: str) -> Payment | None:
        """Deadline callback. Returns None if the attempt was already resolved."""

        with self._lock:
            payment_id = self._by_ref.get(transaction_ref)
            if payment_id is None:
                return None

            payment = self._payments[payment_id]
            if payment.status not in OPEN_STATUSES:
                return None

            return self._expire(payment)

    def expire_overdue(self) -> list[Payment]:
        with self._lock:
            overdue = [
                p
                for p in self._payments.values()
                if p.status in OPEN_STATUSES and self._is_overdue(p)
            ]
            return [self._expire(p) for p in overdue]

    def simulate_callback(self, transaction_ref: str) -> Payment:
        """Resolve a simulated attempt through the regular reconciliation path."""

        resolve = getattr(self._provider, "resolve", None)
        if resolve is None:
            raise PaymentProviderError(f"{self._provider.name} payments cannot be simulated")

        with self._lock:
            payment = self._by_reference(transaction_ref).model_copy(deep=True)
            return self.reconcile_payment(resolve(payment))

    def refund_payment(self, payment_id: str, reason: str | None = None) -> Payment:
        with self._lock:
            payment = self._get(payment_id)
            if payment.status != PaymentRecordStatus.CAPTURED:
                raise InvalidTransitionError(
                    "payment", payment.status.value, PaymentRecordStatus.REFUNDED.value
                )

            if payment.method != PaymentMethodKind.COD:
                refund_id = self._provider.refund(payment, payment.amount)
                if refund_id:
                    payment.notes["refund_id"] = refund_id
            if reason:
                payment.notes["refund_reason"] = reason

            payment.status = PaymentRecordStatus.REFUNDED
            payment.refunded_amount = payment.amount
            payment.refunded_at = self._clock()
            self._orders.update_payment_status(payment.order_id, PaymentStatus.REFUNDED)

            logger.info(
                "payments.refunded ref=%s order=%s", payment.transaction_ref, payment.order_id
            )
            self._publish(EventTypeV1.PAYMENT_REFUNDED, payment)
            return payment.model_copy(deep=True)

    def get_payment(self, payment_id: str) -> Payment:
        with self._lock:
            return self._get(payment_id).model_copy(deep=True)

    def get_by_reference(self, transaction_ref: str) -> Payment:
        with self._lock:
            return self._by_reference(transaction_ref).model_copy(deep=True)

    def payments_for_order(self, order_id: str) -> list[Payment]:
        with self._lock:
            rows = [p for p in self._payments.values() if p.order_id == order_id]
            rows.sort(key=lambda p: p.created_at)
            return [p.model_copy(deep=True) for p in rows]

    def _start_cod(self, order: Order, payment: Payment) -> PaymentAttempt:
        # Cash is collected at delivery; nothing to wait for.
        now = payment.created_at
        payment.status = PaymentRecordStatus.CAPTURED
        payment.authorized_at = now
        payment.captured_at = now

        self._store(payment)
        self._orders.update_payment_status(
            order.id, PaymentStatus.PROCESSING, payment_method=PaymentMethodKind.COD
        )
        self._orders.update_payment_status(order.id, PaymentStatus.COMPLETED)

        logger.info("payments.cod ref=%s order=%s", payment.transaction_ref, order.id)
        self._publish(EventTypeV1.PAYMENT_STARTED, payment)
        self._publish(EventTypeV1.PAYMENT_CAPTURED, payment)

        return PaymentAttempt(
            payment=payment.model_copy(deep=True),
            instructions=CodInstructions(
                transaction_ref=payment.transaction_ref,
                amount=payment.amount,
                currency=payment.currency,
            ),
        )

    def _capture(self, payment: Payment, response: ProviderResponse) -> Payment:
        now = self._clock()
        payment.status = PaymentRecordStatus.CAPTURED
        payment.authorized_at = payment.authorized_at or now
        payment.captured_at = now
        payment.provider_payment_id = response.provider_payment_id
        payment.provider_signature = response.provider_signature
        if response.provider_order_id:
            payment.provider_order_id = response.provider_order_id
        self._cancel_deadline(payment.transaction_ref)

        order = self._orders.update_payment_status(payment.order_id, PaymentStatus.COMPLETED)
        if payment.method != PaymentMethodKind.COD and order.status == OrderStatus.PENDING:
            self._orders.advance_status(order.id, OrderStatus.CONFIRMED, notes="Payment received")

        logger.info(
            "payments.captured ref=%s order=%s amount=%s",
            payment.transaction_ref,
            payment.order_id,
            payment.amount,
        )
        self._publish(EventTypeV1.PAYMENT_CAPTURED, payment)
        return payment.model_copy(deep=True)

    def _fail(
        self,
        payment: Payment,
        status: PaymentRecordStatus,
        *,
        code: str,
        description: str,
        event_type: EventTypeV1,
    ) -> Payment:
        payment.status = status
        payment.error_code = code
        payment.error_description = description
        payment.failed_at = self._clock()
        self._cancel_deadline(payment.transaction_ref)

        order = self._orders.get_order(payment.order_id)
        if order.payment_status == PaymentStatus.PROCESSING:
            self._orders.update_payment_status(order.id, PaymentStatus.FAILED)

        logger.warning(
            "payments.%s ref=%s order=%s code=%s",
            status.value,
            payment.transaction_ref,
            payment.order_id,
            code,
        )
        self._publish(event_type, payment)
        return payment.model_copy(deep=True)

    def _expire(self, payment: Payment) -> Payment:
        return self._fail(
            payment,
            PaymentRecordStatus.EXPIRED,
            code="PAYMENT_EXPIRED",
            description="Payment window expired. Please try again.",
            event_type=EventTypeV1.PAYMENT_EXPIRED,
        )

    def _release_open_attempts(self, order_id: str) -> None:
        for payment in list(self._payments.values()):
            if payment.order_id == order_id and payment.status in OPEN_STATUSES:
                self._fail(
                    payment,
                    PaymentRecordStatus.CANCELLED,
                    code="SUPERSEDED",
                    description="Superseded by a new payment attempt",
                    event_type=EventTypeV1.PAYMENT_CANCELLED,
                )

    def _is_overdue(self, payment: Payment) -> bool:
        return payment.expires_at is not None and self._clock() >= payment.expires_at

    def _cancel_deadline(self, transaction_ref: str) -> None:
        handle = self._deadlines.pop(transaction_ref, None)
        if handle is not None:
            handle.cancel()

    def _match(self, response: ProviderResponse) -> Payment:
        payment_id = None
        if response.transaction_ref:
            payment_id = self._by_ref.get(response.transaction_ref)
        if payment_id is None and response.provider_order_id:
            payment_id = self._by_provider_order.get(response.provider_order_id)

        reference = response.transaction_ref or response.provider_order_id or response.order_id
        if payment_id is None and response.order_id and reference == response.order_id:
            # Older attempts are always resolved, so the latest one is the only candidate.
            attempts = [p for p in self._payments.values() if p.order_id == response.order_id]
            if attempts:
                payment_id = attempts[-1].id
        if payment_id is None:
            raise UnknownTransactionError(reference)

        payment = self._payments[payment_id]
        if response.order_id and response.order_id != payment.order_id:
            raise UnknownTransactionError(reference)
        return payment

    def _store(self, payment: Payment) -> None:
        self._payments[payment.id] = payment
        self._by_ref[payment.transaction_ref] = payment.id
        if payment.provider_order_id:
            self._by_provider_order[payment.provider_order_id] = payment.id

    def _get(self, payment_id: str) -> Payment:
        payment = self._payments.get(payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def _by_reference(self, transaction_ref: str) -> Payment:
        payment_id = self._by_ref.get(transaction_ref)
        if payment_id is None:
            raise UnknownTransactionError(transaction_ref)
        return self._payments[payment_id]

    def _publish(self, event_type: EventTypeV1, payment: Payment) -> None:
        if self._bus is None:
            return

        self._bus.publish(
            entity_type=EntityTypeV1.PAYMENT,
            entity_id=payment.id,
            event_type=event_type,
            payload={"payment": payment.model_dump(mode="json")},
        )


def _require_complete(method: PaymentMethodDetails) -> None:
    fields = _REQUIRED_FIELDS.get(type(method), ())
    missing = [name for name in fields if not str(getattr(method, name) or "").strip()]
    if missing:
        raise IncompletePaymentDetailsError(method.kind, missing)


def _describe(method: PaymentMethodDetails) -> str | None:
    if isinstance(method, CardMethod):
        return f"Card **** {method.number.strip()[-4:]}"
    if isinstance(method, NetBankingMethod):
        return method.bank
    if isinstance(method, WalletMethod):
        return method.wallet
    if isinstance(method, UpiMethod):
        return method.payer_vpa
    return None
