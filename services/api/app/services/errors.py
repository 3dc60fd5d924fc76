from __future__ import annotations


class CheckoutError(Exception):
    """Base class for cart, order and payment errors.

    ``retryable`` tells the checkout UI whether the customer can simply try the payment again
    or has to go back and fix their cart or address first.
    """

    retryable = False


class InvalidQuantityError(CheckoutError):
    def __init__(self, quantity: int) -> None:
        super().__init__(f"Quantity must be at least 1, got {quantity}")
        self.quantity = quantity


class EmptyCartError(CheckoutError):
    def __init__(self) -> None:
        super().__init__("Cannot create an order from an empty cart")


class IncompleteAddressError(CheckoutError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Shipping address is incomplete. Missing: {', '.join(missing)}")
        self.missing = missing


class InvalidTransitionError(CheckoutError):
    def __init__(self, field: str, current: str, requested: str) -> None:
        super().__init__(f"Cannot move {field} from {current!r} to {requested!r}")
        self.field = field
        self.current = current
        self.requested = requested


class SessionNotFoundError(CheckoutError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Checkout session not found: {session_id}")
        self.session_id = session_id


class OrderNotFoundError(CheckoutError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class PaymentNotFoundError(CheckoutError):
    def __init__(self, payment_id: str) -> None:
        super().__init__(f"Payment not found: {payment_id}")
        self.payment_id = payment_id


class AddressNotFoundError(CheckoutError):
    def __init__(self, user_id: str, address_id: str) -> None:
        super().__init__(f"Address {address_id} not found for user {user_id}")
        self.user_id = user_id
        self.address_id = address_id


class OrderNotPayableError(CheckoutError):
    def __init__(self, order_id: str, reason: str) -> None:
        super().__init__(f"Order {order_id} cannot be paid: {reason}")
        self.order_id = order_id
        self.reason = reason


class IncompletePaymentDetailsError(CheckoutError):
    retryable = True

    def __init__(self, method: str, missing: list[str]) -> None:
        super().__init__(f"Missing {method} payment details: {', '.join(missing)}")
        self.method = method
        self.missing = missing


class PaymentLimitError(CheckoutError):
    retryable = True

    def __init__(self, method: str, amount: int, limit: int) -> None:
        super().__init__(
            f"Amount {amount} exceeds the {method} limit of {limit}. Choose another method."
        )
        self.method = method
        self.amount = amount
        self.limit = limit


class UnknownTransactionError(CheckoutError):
    def __init__(self, reference: str | None) -> None:
        super().__init__(f"No pending payment attempt matches {reference!r}")
        self.reference = reference


class ExpiredPaymentError(CheckoutError):
    retryable = True

    def __init__(self, transaction_ref: str) -> None:
        super().__init__(f"Payment attempt {transaction_ref} expired. Start a new payment.")
        self.transaction_ref = transaction_ref


class PaymentInitializationError(CheckoutError):
    retryable = True

    def __init__(self, detail: str) -> None:
        super().__init__(f"Payments are unavailable: {detail}")
        self.detail = detail
