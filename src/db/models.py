"""SQLAlchemy models for call records."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallStatus(str, enum.Enum):
    INITIATED = "INITIATED"
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    FAILED = "FAILED"
    COMPLETED = "COMPLETED"


class CallRecord(Base):
    """One screening call, its context parameters and its outcome."""

    __tablename__ = "calls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    call_sid: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    candidate_name: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[str | None] = mapped_column(String(255))
    product: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(32), default=CallStatus.INITIATED.value)
    transcript: Mapped[str | None] = mapped_column(Text())
    analysis: Mapped[str | None] = mapped_column(Text())
    metrics: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    termination_reason: Mapped[str | None] = mapped_column(Text())
    created_at: Mapped[datetime] = mapped_column(default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=_utcnow, onupdate=_utcnow)
