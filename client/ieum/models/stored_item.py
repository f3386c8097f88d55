# client/ieum/models/stored_item.py
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ieum.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredItem(Base):
    """Key/value row; the app only uses a handful of fixed keys."""
    __tablename__ = "stored_items"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
