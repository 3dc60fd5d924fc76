from __future__ import annotations

from datetime import datetime
from urllib.parse import quote

from services.api.app.models.payment import UpiInstructions

QR_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/"

# App specific schemes. Every link carries the same query string as the generic upi:// URI.
UPI_APP_SCHEMES: dict[str, str] = {
    "gpay": "tez://upi/pay",
    "phonepe": "phonepe://pay",
    "paytm": "paytmmp://pay",
    "bhim": "bhim://pay",
    "generic": "upi://pay",
}


def format_amount(amount: int) -> str:
    return f"{amount:.2f}"


def upi_query(
    *,
    vpa: str,
    payee_name: str,
    amount: int,
    currency: str,
    note: str,
    transaction_ref: str,
) -> str:
    params = (
        ("pa", vpa),
        ("pn", payee_name),
        ("am", format_amount(amount)),
        ("cu", currency),
        ("tn", note),
        ("tr", transaction_ref),
    )
    return "&".join(f"{key}={quote(value, safe='@.')}" for key, value in params)


def build_upi_instructions(
    *,
    vpa: str,
    payee_name: str,
    amount: int,
    currency: str,
    order_id: str,
    transaction_ref: str,
    expires_at: datetime | None = None,
    is_simulated: bool = False,
) -> UpiInstructions:
    """Build the UPI intent payload and everything derived from it.

    The output is a pure function of the inputs, so the same attempt always renders the same
    QR code and links.
    """

    note = f"Payment for Order {order_id}"
    query = upi_query(
        vpa=vpa,
        payee_name=payee_name,
        amount=amount,
        currency=currency,
        note=note,
        transaction_ref=transaction_ref,
    )
    deep_links = {app: f"{scheme}?{query}" for app, scheme in UPI_APP_SCHEMES.items()}
    uri = deep_links["generic"]

    return UpiInstructions(
        vpa=vpa,
        payee_name=payee_name,
        amount=amount,
        currency=currency,
        note=note,
        transaction_ref=transaction_ref,
        uri=uri,
        qr_code_url=f"{QR_SERVICE_URL}?size=200x200&data={quote(uri, safe='')}",
        deep_links=deep_links,
        expires_at=expires_at,
        is_simulated=is_simulated,
    )
