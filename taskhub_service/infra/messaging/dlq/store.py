"""Dead-letter storage for events and queue messages.

Entries are kept until an operator inspects and replays them; nothing here
replays on its own. Recording an entry also raises an alert through the
configured ``DeadLetterAlerter``.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from taskhub_service.core.events.base import generate_event_id
from taskhub_service.core.exceptions import DeadLetterNotFoundError, ReplayConflictError
from taskhub_service.infra.metrics.prometheus import dead_letters_total

if TYPE_CHECKING:
    from .alerting import DeadLetterAlerter

logger = logging.getLogger(__name__)


class DeadLetterKind(StrEnum):
    EVENT = "event"
    MESSAGE = "message"


class DeadLetterStatus(StrEnum):
    PENDING = "pending"
    REPLAYED = "replayed"


class DeadLetterReason(StrEnum):
    MAX_ATTEMPTS_EXCEEDED = "max_attempts_exceeded"
    FATAL = "fatal"
    MAX_DELIVERIES_EXCEEDED = "max_deliveries_exceeded"


class DeadLetterEntry(BaseModel):
    """One dead-lettered event delivery or queue message.

    Attributes:
        entry_id: Identifier used by the admin surface.
        kind: ``event`` for a hub delivery, ``message`` for a queue message.
        tenant_id: Owning tenant.
        source: Handler id (events) or ordering key (messages).
        reason: Why the delivery gave up.
        attempts: Attempts or deliveries made before giving up.
        last_error: Last error seen, if any.
        body: The serialized event or message.
    """

    entry_id: str = Field(default_factory=generate_event_id)
    kind: DeadLetterKind
    tenant_id: str
    source: str
    reason: DeadLetterReason
    attempts: int = Field(ge=0)
    last_error: str | None = None
    body: dict[str, Any]
    dead_lettered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: DeadLetterStatus = DeadLetterStatus.PENDING
    replayed_at: datetime | None = None

    model_config = ConfigDict(frozen=True)


class DeadLetterStore:
    """In-memory dead-letter storage shared by the hub and the durable queue."""

    def __init__(self, alerter: DeadLetterAlerter | None = None) -> None:
        self._entries: dict[str, DeadLetterEntry] = {}
        self._lock = threading.Lock()
        self._alerter = alerter

    async def record(
        self,
        *,
        kind: DeadLetterKind,
        tenant_id: str,
        source: str,
        reason: DeadLetterReason,
        attempts: int,
        body: dict[str, Any],
        last_error: str | None = None,
    ) -> DeadLetterEntry:
        """Store an entry, count it and raise an alert."""
        entry = DeadLetterEntry(
            kind=kind,
            tenant_id=tenant_id,
            source=source,
            reason=reason,
            attempts=attempts,
            last_error=last_error,
            body=body,
        )
        with self._lock:
            self._entries[entry.entry_id] = entry

        dead_letters_total.labels(kind=kind.value, reason=reason.value).inc()
        logger.error(
            "Dead-lettered %s from %s after %d attempt(s)",
            kind.value,
            source,
            attempts,
            extra={
                "entry_id": entry.entry_id,
                "tenant_id": tenant_id,
                "reason": reason.value,
                "last_error": last_error,
            },
        )

        if self._alerter is not None:
            await self._alerter.alert(entry)
        return entry

    def get(self, entry_id: str) -> DeadLetterEntry:
        """Raises DeadLetterNotFoundError for unknown ids."""
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise DeadLetterNotFoundError(entry_id)
        return entry

    def list_entries(
        self,
        *,
        tenant_id: str | None = None,
        kind: DeadLetterKind | None = None,
        status: DeadLetterStatus | None = None,
        source: str | None = None,
    ) -> list[DeadLetterEntry]:
        with self._lock:
            entries = list(self._entries.values())
        return sorted(
            (
                e
                for e in entries
                if (tenant_id is None or e.tenant_id == tenant_id)
                and (kind is None or e.kind == kind)
                and (status is None or e.status == status)
                and (source is None or e.source == source)
            ),
            key=lambda e: e.dead_lettered_at,
        )

    def mark_replayed(self, entry_id: str) -> DeadLetterEntry:
        """Flip an entry to ``replayed``.

        Raises:
            DeadLetterNotFoundError: Unknown id.
            ReplayConflictError: The entry was replayed before.
        """
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                raise DeadLetterNotFoundError(entry_id)
            if entry.status is DeadLetterStatus.REPLAYED:
                raise ReplayConflictError(entry_id)
            entry = entry.model_copy(
                update={"status": DeadLetterStatus.REPLAYED, "replayed_at": datetime.now(UTC)}
            )
            self._entries[entry_id] = entry
        return entry

    def revert_replay(self, entry_id: str) -> None:
        """Put an entry back to ``pending`` after a replay that could not be submitted."""
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is not None:
                self._entries[entry_id] = entry.model_copy(
                    update={"status": DeadLetterStatus.PENDING, "replayed_at": None}
                )

    def count(self, *, status: DeadLetterStatus | None = None) -> int:
        return len(self.list_entries(status=status))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "DeadLetterEntry",
    "DeadLetterKind",
    "DeadLetterReason",
    "DeadLetterStatus",
    "DeadLetterStore",
]
