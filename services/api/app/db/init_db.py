from __future__ import annotations

import os

from services.api.app.db.database import get_engine
from services.api.app.db.models import Base


def db_enabled() -> bool:
    return os.getenv("LOOOM_DB_AUTO_CREATE", "true").strip().lower() in {"1", "true", "yes", "y"}


def init_db() -> bool:
    if not db_enabled():
        return False

    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    return True
