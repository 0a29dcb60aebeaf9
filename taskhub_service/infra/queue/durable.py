"""Guaranteed-delivery queue with per-key ordering and leases.

Messages sharing an ordering key form a FIFO. Only the head of a key is ever
deliverable, and only while no lease is outstanding on that key, so a key is
processed by one consumer at a time and strictly in enqueue order. The lease
table is the single source of truth for key ownership.

A lease that expires without an ack makes the head visible again. Every
``receive`` counts as a delivery attempt; once a message has been delivered
``max_delivery_attempts`` times and is released again (expiry or nack), it is
moved to dead-letter storage and an alert is raised.

Example:
    queue = DurableQueue(QueueSettings(lease_seconds=30), dead_letters)
    message_id = await queue.enqueue("T1:42", {"kind": "task.upsert"})
    lease = await queue.receive("consumer-1")
    receipt = await queue.ack(lease.message_id, lease.lease_token)
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from taskhub_service.core.events.base import generate_event_id
from taskhub_service.core.exceptions import LeaseExpiredError
from taskhub_service.infra.messaging.dlq.store import DeadLetterKind, DeadLetterReason
from taskhub_service.infra.metrics.prometheus import (
    queue_acked_total,
    queue_deduplicated_total,
    queue_enqueued_total,
    queue_lease_expirations_total,
    queue_nacked_total,
    queue_pending_messages,
)

from .models import DeliveryReceipt, Lease, QueueMessage, QueueStats

if TYPE_CHECKING:
    from taskhub_service.core.settings.queue import QueueSettings
    from taskhub_service.infra.messaging.dlq.store import DeadLetterStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class _Record:
    message_id: str
    ordering_key: str
    payload: dict[str, Any]
    enqueued_at: datetime
    seq: int
    dedup_id: str | None = None
    delivery_attempts: int = 0
    visible_at: datetime | None = None
    last_error: str | None = None

    def snapshot(self, lease_expires_at: datetime | None = None) -> QueueMessage:
        return QueueMessage(
            message_id=self.message_id,
            ordering_key=self.ordering_key,
            payload=self.payload,
            delivery_attempts=self.delivery_attempts,
            lease_expires_at=lease_expires_at,
            enqueued_at=self.enqueued_at,
            dedup_id=self.dedup_id,
        )


@dataclass
class _LeaseState:
    message_id: str
    token: str
    consumer_id: str
    expires_at: datetime


class DurableQueue:
    """In-process durable queue.

    Args:
        settings: Lease duration and delivery attempt limit.
        dead_letters: Where exhausted messages go.
        clock: Returns the current UTC time; tests inject a controllable one.
    """

    def __init__(
        self,
        settings: QueueSettings,
        dead_letters: DeadLetterStore,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.settings = settings
        self._dead_letters = dead_letters
        self._clock = clock
        self._lock = asyncio.Lock()
        self._keys: dict[str, deque[_Record]] = {}
        self._records: dict[str, _Record] = {}
        self._leases: dict[str, _LeaseState] = {}
        self._dedup: dict[str, str] = {}
        self._dedup_expiry: deque[tuple[datetime, str]] = deque()
        self._seq = 0
        self._enqueued_total = 0
        self._acked_total = 0
        self._dead_lettered_total = 0
        self._expired_total = 0

    @property
    def lease_duration(self) -> timedelta:
        return timedelta(seconds=self.settings.lease_seconds)

    async def enqueue(
        self,
        ordering_key: str,
        payload: dict[str, Any],
        *,
        dedup_id: str | None = None,
    ) -> str:
        """Append a message to its key's FIFO and return its id.

        A repeated ``dedup_id`` returns the first message's id and enqueues
        nothing. The dedup index outlives the message itself for
        ``dedup_retention_seconds`` after it was acked or dead-lettered.
        """
        if ":" not in ordering_key:
            msg = f"ordering_key must look like '<tenant_id>:<entity_id>', got {ordering_key!r}"
            raise ValueError(msg)

        async with self._lock:
            self._prune_dedup(self._clock())
            if dedup_id is not None and dedup_id in self._dedup:
                queue_deduplicated_total.inc()
                existing = self._dedup[dedup_id]
                logger.debug(
                    "Duplicate enqueue ignored",
                    extra={"dedup_id": dedup_id, "message_id": existing},
                )
                return existing

            self._seq += 1
            record = _Record(
                message_id=generate_event_id(),
                ordering_key=ordering_key,
                payload=dict(payload),
                enqueued_at=self._clock(),
                seq=self._seq,
                dedup_id=dedup_id,
            )
            self._keys.setdefault(ordering_key, deque()).append(record)
            self._records[record.message_id] = record
            if dedup_id is not None:
                self._dedup[dedup_id] = record.message_id
            self._enqueued_total += 1

        queue_enqueued_total.inc()
        self._update_gauge()
        logger.debug(
            "Message enqueued",
            extra={"message_id": record.message_id, "ordering_key": ordering_key},
        )
        return record.message_id

    async def receive(self, consumer_id: str) -> Lease | None:
        """Lease the oldest deliverable head message, or return None.

        A key is skipped while it has an outstanding lease, so at most one
        message per key is in flight.
        """
        exhausted: list[_Record] = []
        lease: Lease | None = None

        async with self._lock:
            now = self._clock()
            exhausted = self._expire_leases(now)

            candidate: _Record | None = None
            for key, records in self._keys.items():
                if key in self._leases or not records:
                    continue
                head = records[0]
                if head.visible_at is not None and head.visible_at > now:
                    continue
                if candidate is None or head.seq < candidate.seq:
                    candidate = head

            if candidate is not None:
                candidate.delivery_attempts += 1
                candidate.visible_at = None
                state = _LeaseState(
                    message_id=candidate.message_id,
                    token=secrets.token_urlsafe(16),
                    consumer_id=consumer_id,
                    expires_at=now + self.lease_duration,
                )
                self._leases[candidate.ordering_key] = state
                lease = Lease(
                    message=candidate.snapshot(state.expires_at),
                    lease_token=state.token,
                    consumer_id=consumer_id,
                    expires_at=state.expires_at,
                )

        await self._dead_letter_all(exhausted)

        if lease is not None:
            logger.debug(
                "Message leased",
                extra={
                    "message_id": lease.message_id,
                    "ordering_key": lease.message.ordering_key,
                    "consumer_id": consumer_id,
                    "delivery_attempts": lease.message.delivery_attempts,
                },
            )
        return lease

    async def ack(self, message_id: str, lease_token: str) -> DeliveryReceipt:
        """Acknowledge a leased message and remove it.

        Raises:
            LeaseExpiredError: The lease is stale, expired or unknown.
        """
        async with self._lock:
            now = self._clock()
            record, state = self._validate_lease(message_id, lease_token, now)

            records = self._keys[record.ordering_key]
            records.popleft()
            if not records:
                del self._keys[record.ordering_key]
            del self._leases[record.ordering_key]
            del self._records[message_id]
            self._forget_later(record, now)
            self._acked_total += 1
            self._prune_dedup(now)

        queue_acked_total.inc()
        self._update_gauge()
        logger.debug(
            "Message acked",
            extra={"message_id": message_id, "ordering_key": record.ordering_key},
        )
        return DeliveryReceipt(
            message_id=message_id,
            ordering_key=record.ordering_key,
            consumer_id=state.consumer_id,
            delivery_attempts=record.delivery_attempts,
            acked_at=now,
        )

    async def extend_lease(
        self,
        message_id: str,
        lease_token: str,
        duration: float | timedelta | None = None,
    ) -> Lease:
        """Push the lease expiry to ``now + duration`` (default lease length).

        Raises:
            LeaseExpiredError: The lease is stale, expired or unknown.
        """
        if duration is None:
            delta = self.lease_duration
        elif isinstance(duration, timedelta):
            delta = duration
        else:
            delta = timedelta(seconds=duration)

        async with self._lock:
            now = self._clock()
            record, state = self._validate_lease(message_id, lease_token, now)
            state.expires_at = now + delta
            return Lease(
                message=record.snapshot(state.expires_at),
                lease_token=state.token,
                consumer_id=state.consumer_id,
                expires_at=state.expires_at,
            )

    async def nack(
        self,
        message_id: str,
        lease_token: str,
        *,
        delay: float = 0.0,
        error: str | None = None,
    ) -> None:
        """Release a lease early so the message is delivered again.

        The released delivery still counts as an attempt; a message that has
        used up its attempts is dead-lettered instead.

        Raises:
            LeaseExpiredError: The lease is stale, expired or unknown.
        """
        exhausted: list[_Record] = []
        async with self._lock:
            now = self._clock()
            record, _ = self._validate_lease(message_id, lease_token, now)
            del self._leases[record.ordering_key]
            record.last_error = error
            if record.delivery_attempts >= self.settings.max_delivery_attempts:
                self._remove(record, now)
                exhausted.append(record)
            else:
                record.visible_at = now + timedelta(seconds=delay) if delay > 0 else None

        queue_nacked_total.inc()
        await self._dead_letter_all(exhausted)

    async def sweep_expired(self) -> int:
        """Release expired leases now; returns how many expired."""
        async with self._lock:
            before = self._expired_total
            now = self._clock()
            exhausted = self._expire_leases(now)
            self._prune_dedup(now)
            expired = self._expired_total - before
        await self._dead_letter_all(exhausted)
        return expired

    async def pending_count(self, ordering_key: str | None = None) -> int:
        """Messages held by the queue (visible or leased), optionally for one key."""
        async with self._lock:
            if ordering_key is not None:
                return len(self._keys.get(ordering_key, ()))
            return len(self._records)

    async def in_flight_count(self) -> int:
        async with self._lock:
            now = self._clock()
            return sum(1 for s in self._leases.values() if s.expires_at > now)

    async def peek(self, ordering_key: str) -> list[QueueMessage]:
        """Snapshots of a key's messages in delivery order."""
        async with self._lock:
            lease = self._leases.get(ordering_key)
            return [
                r.snapshot(lease.expires_at if lease and lease.message_id == r.message_id else None)
                for r in self._keys.get(ordering_key, ())
            ]

    async def stats(self) -> QueueStats:
        async with self._lock:
            now = self._clock()
            return QueueStats(
                pending=len(self._records),
                in_flight=sum(1 for s in self._leases.values() if s.expires_at > now),
                ordering_keys=len(self._keys),
                enqueued_total=self._enqueued_total,
                acked_total=self._acked_total,
                dead_lettered_total=self._dead_lettered_total,
                lease_expirations_total=self._expired_total,
                dedup_ids=len(self._dedup),
            )

    # ------------------------------------------------------------------
    # Internals; callers hold self._lock
    # ------------------------------------------------------------------

    def _validate_lease(
        self,
        message_id: str,
        lease_token: str,
        now: datetime,
    ) -> tuple[_Record, _LeaseState]:
        record = self._records.get(message_id)
        if record is None:
            raise LeaseExpiredError(message_id)
        state = self._leases.get(record.ordering_key)
        if (
            state is None
            or state.message_id != message_id
            or not secrets.compare_digest(state.token, lease_token)
            or state.expires_at <= now
        ):
            raise LeaseExpiredError(message_id)
        return record, state

    def _expire_leases(self, now: datetime) -> list[_Record]:
        exhausted: list[_Record] = []
        for key, state in list(self._leases.items()):
            if state.expires_at > now:
                continue
            del self._leases[key]
            self._expired_total += 1
            queue_lease_expirations_total.inc()
            record = self._records[state.message_id]
            record.last_error = record.last_error or "lease expired"
            logger.warning(
                "Lease expired without ack",
                extra={
                    "message_id": record.message_id,
                    "ordering_key": key,
                    "consumer_id": state.consumer_id,
                    "delivery_attempts": record.delivery_attempts,
                },
            )
            if record.delivery_attempts >= self.settings.max_delivery_attempts:
                self._remove(record, now)
                exhausted.append(record)
        return exhausted

    def _remove(self, record: _Record, now: datetime) -> None:
        records = self._keys.get(record.ordering_key)
        if records is not None:
            records.remove(record)
            if not records:
                del self._keys[record.ordering_key]
        self._records.pop(record.message_id, None)
        self._dead_lettered_total += 1
        self._forget_later(record, now)

    def _forget_later(self, record: _Record, now: datetime) -> None:
        if record.dedup_id is not None:
            retention = timedelta(seconds=self.settings.dedup_retention_seconds)
            self._dedup_expiry.append((now + retention, record.dedup_id))

    def _prune_dedup(self, now: datetime) -> None:
        while self._dedup_expiry and self._dedup_expiry[0][0] <= now:
            _, dedup_id = self._dedup_expiry.popleft()
            self._dedup.pop(dedup_id, None)

    async def _dead_letter_all(self, records: list[_Record]) -> None:
        for record in records:
            await self._dead_letters.record(
                kind=DeadLetterKind.MESSAGE,
                tenant_id=record.ordering_key.split(":", 1)[0],
                source=record.ordering_key,
                reason=DeadLetterReason.MAX_DELIVERIES_EXCEEDED,
                attempts=record.delivery_attempts,
                last_error=record.last_error,
                body=record.snapshot().model_dump(mode="json"),
            )
        if records:
            self._update_gauge()

    def _update_gauge(self) -> None:
        queue_pending_messages.set(len(self._records))


__all__ = ["Clock", "DurableQueue", "utc_now"]
