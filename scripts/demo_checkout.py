from __future__ import annotations

import argparse
import json

from services.api.app.db.init_db import init_db
from services.api.app.db.sink import EventLogSink
from services.api.app.models.cart import ProductSnapshot
from services.api.app.models.order import Address, CustomerInfo
from services.api.app.models.payment import (
    CardMethod,
    CodMethod,
    NetBankingMethod,
    PaymentMethodKind,
    UpiMethod,
    WalletMethod,
)
from services.api.app.services.deadlines import ManualDeadlineScheduler
from services.api.app.services.payment_simulated import SimulatedPaymentProvider, always
from services.api.app.services.store import CheckoutStore


def _method(kind: PaymentMethodKind):
    if kind == PaymentMethodKind.CARD:
        return CardMethod(
            number="4111111111111111", expiry="12/30", cvv="123", holder_name="Demo Customer"
        )
    if kind == PaymentMethodKind.NETBANKING:
        return NetBankingMethod(bank="HDFC")
    if kind == PaymentMethodKind.WALLET:
        return WalletMethod(wallet="paytm")
    if kind == PaymentMethodKind.COD:
        return CodMethod()
    return UpiMethod()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a simulated Looom checkout in process")
    parser.add_argument(
        "--method", default="upi", choices=[k.value for k in PaymentMethodKind]
    )
    parser.add_argument("--outcome", default="success", choices=["success", "failure", "expire"])
    parser.add_argument("--price", type=int, default=1400)
    parser.add_argument("--quantity", type=int, default=2)
    parser.add_argument("--email", default="demo@looom.shop")
    parser.add_argument("--persist", action="store_true", help="Write events to DATABASE_URL")
    args = parser.parse_args()

    scheduler = ManualDeadlineScheduler()
    store = CheckoutStore(
        provider=SimulatedPaymentProvider(always(args.outcome != "failure")),
        scheduler=scheduler,
    )
    if args.persist and init_db():
        store.bus.subscribe(EventLogSink())

    session = store.open_session()
    session.cart.add_item(
        ProductSnapshot(id="kurta-01", name="Handloom Kurta", price=args.price),
        size="M",
        color="Indigo",
        quantity=args.quantity,
    )
    print(f"cart totals: {session.cart.totals().model_dump_json()}")

    kind = PaymentMethodKind(args.method)
    order = store.place_order(
        session.session_id,
        CustomerInfo(name="Demo Customer", email=args.email, phone="9999999999"),
        address=Address(street="12 MG Road", city="Bengaluru", state="KA", pincode="560001"),
        payment_method=kind,
    )

    attempt = store.gateway.start_payment(order.id, _method(kind))
    print(f"instructions: {attempt.instructions.model_dump_json()}")

    if kind != PaymentMethodKind.COD:
        if args.outcome == "expire":
            scheduler.fire_all()
        else:
            store.gateway.simulate_callback(attempt.payment.transaction_ref)

    final = store.orders.get_order(order.id)
    print(json.dumps(final.model_dump(mode="json"), indent=2))
    for payment in store.gateway.payments_for_order(order.id):
        print(f"payment {payment.transaction_ref}: {payment.status.value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
