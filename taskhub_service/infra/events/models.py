"""SQLAlchemy model for the durable event log."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from taskhub_service.infra.database.base import Base


class EventLogRecord(Base):
    """One published event.

    ``event_id`` is the primary key, which makes appends insert-if-absent:
    re-publishing a known id leaves the original row untouched.
    """

    __tablename__ = "event_log"

    event_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(200), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    correlation_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_event_log_tenant_created", "tenant_id", "created_at"),)


__all__ = ["EventLogRecord"]
