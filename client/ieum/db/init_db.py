# client/ieum/db/init_db.py
from __future__ import annotations

from sqlalchemy.engine import Engine

from ieum.db.base import Base

# models must be imported so the tables are registered on Base.metadata
from ieum import models  # noqa: F401


def init_db(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
