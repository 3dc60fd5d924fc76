"""Looom checkout API service entrypoint."""

import logging
import os

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.db.sink import EventLogSink
from services.api.app.routers.address import router as address_router
from services.api.app.routers.audit import router as audit_router
from services.api.app.routers.cart import router as cart_router
from services.api.app.routers.notification import router as notification_router
from services.api.app.routers.order import router as order_router
from services.api.app.routers.payment import router as payment_router
from services.api.app.services.store import get_store

logging.basicConfig(
    level=os.getenv("LOOOM_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Looom Checkout API")

app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(address_router)
app.include_router(notification_router)
app.include_router(audit_router)


@app.on_event("startup")
def _startup() -> None:
    if init_db():
        get_store().bus.subscribe(EventLogSink())


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
