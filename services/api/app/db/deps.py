from __future__ import annotations

from collections.abc import Generator

from services.api.app.db.database import db_session
from services.api.app.services.store import CheckoutStore, get_store
from sqlalchemy.orm import Session


def get_db() -> Generator[Session, None, None]:
    db = db_session()
    try:
        yield db
    finally:
        db.close()


def get_checkout_store() -> CheckoutStore:
    return get_store()
