# agrotrade/models.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.orm import validates

from .db import Base


class KeyValue(Base):
    """One entry of the key/value store; the crop collection lives under a single key."""

    __tablename__ = "kv_store"

    key = Column(String, primary_key=True, index=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @validates("updated_at")
    def _tz(self, _, v):
        # ensure aware timestamps
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)
