"""Durable event log owned by the hub.

``append`` is idempotent on ``event_id``: it returns True the first time an
id is recorded and False for every repeat, without changing the stored event.
"""

from __future__ import annotations

import logging
from datetime import UTC
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from taskhub_service.core.events.base import Event

from .models import EventLogRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class EventLog(Protocol):
    async def append(self, event: Event) -> bool: ...

    async def get(self, event_id: str) -> Event | None: ...

    async def list_for_tenant(self, tenant_id: str, *, limit: int = 100) -> list[Event]: ...

    async def count(self) -> int: ...


class InMemoryEventLog:
    """Process-local event log, used when no database is configured."""

    def __init__(self) -> None:
        self._events: dict[str, Event] = {}

    async def append(self, event: Event) -> bool:
        if event.event_id in self._events:
            return False
        self._events[event.event_id] = event
        return True

    async def get(self, event_id: str) -> Event | None:
        return self._events.get(event_id)

    async def list_for_tenant(self, tenant_id: str, *, limit: int = 100) -> list[Event]:
        events = [e for e in self._events.values() if e.tenant_id == tenant_id]
        events.sort(key=lambda e: (e.created_at, e.event_id))
        return events[:limit]

    async def count(self) -> int:
        return len(self._events)


class SqlEventLog:
    """Event log stored in the ``event_log`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, event: Event) -> bool:
        async with self._session_factory() as session:
            if await session.get(EventLogRecord, event.event_id) is not None:
                return False
            session.add(_to_record(event))
            try:
                await session.commit()
            except IntegrityError:
                # Lost an insert race on the primary key
                await session.rollback()
                return False
        return True

    async def get(self, event_id: str) -> Event | None:
        async with self._session_factory() as session:
            record = await session.get(EventLogRecord, event_id)
            return _to_event(record) if record is not None else None

    async def list_for_tenant(self, tenant_id: str, *, limit: int = 100) -> list[Event]:
        stmt = (
            select(EventLogRecord)
            .where(EventLogRecord.tenant_id == tenant_id)
            .order_by(EventLogRecord.created_at, EventLogRecord.event_id)
            .limit(limit)
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            return [_to_event(r) for r in result]

    async def count(self) -> int:
        async with self._session_factory() as session:
            return int(await session.scalar(select(func.count()).select_from(EventLogRecord)) or 0)


def _to_record(event: Event) -> EventLogRecord:
    return EventLogRecord(
        event_id=event.event_id,
        event_type=event.event_type,
        tenant_id=event.tenant_id,
        schema_version=event.schema_version,
        payload=event.payload,
        correlation_id=event.correlation_id,
        created_at=event.created_at,
    )


def _to_event(record: EventLogRecord) -> Event:
    created_at = record.created_at
    if created_at.tzinfo is None:
        # SQLite drops the offset; values are always written in UTC
        created_at = created_at.replace(tzinfo=UTC)
    return Event(
        event_id=record.event_id,
        event_type=record.event_type,
        tenant_id=record.tenant_id,
        schema_version=record.schema_version,
        payload=dict(record.payload),
        correlation_id=record.correlation_id,
        created_at=created_at,
    )


__all__ = ["EventLog", "InMemoryEventLog", "SqlEventLog"]
