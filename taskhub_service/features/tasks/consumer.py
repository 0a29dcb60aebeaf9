"""Core service consumer: applies queue messages to tenant state.

The consumer polls the durable queue, applies each leased message to the
tenant's data namespace with an optimistic version check and acks it. Any
failure nacks the lease so the message is delivered again; the queue
dead-letters it once its delivery attempts are used up.

Application is idempotent: the ids of applied events are kept on the task
document, so a message delivered twice (expired lease, duplicate enqueue)
changes the state only once.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from taskhub_service.core.exceptions import LeaseExpiredError
from taskhub_service.infra.logging.context import log_context
from taskhub_service.infra.metrics.prometheus import core_messages_applied_total
from taskhub_service.workers.handlers import TASK_ATTACH, TASK_UPSERT

if TYPE_CHECKING:
    from taskhub_service.core.settings.queue import QueueSettings
    from taskhub_service.core.tenants import TenantRegistry
    from taskhub_service.infra.queue import DurableQueue, Lease, QueueMessage
    from taskhub_service.infra.store.memory import TransactionalStore

logger = logging.getLogger(__name__)

# Applied event ids remembered per task
APPLIED_EVENT_HISTORY = 1000

# Applied event ids remembered per consumer
CONSUMER_EVENT_HISTORY = 1000

_RESERVED_FIELDS = frozenset(
    {"task_id", "tenant_id", "attachments", "applied_event_ids", "last_event_id"}
)


class ApplyResult(StrEnum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"


class UnsupportedMessageError(ValueError):
    """The message kind has no applier."""


class TaskStateApplier:
    """Applies ``task.upsert`` and ``task.attach`` messages to the store."""

    def __init__(self, tenants: TenantRegistry, store: TransactionalStore) -> None:
        self.tenants = tenants
        self.store = store

    async def apply(self, message: QueueMessage) -> ApplyResult:
        """Apply one message.

        A task missing from the store starts as ``open`` whatever message
        arrives first. A ``TaskCreated`` applied after updates only fills the
        fields they left unset.

        Raises:
            UnknownTenantError: The tenant was deactivated meanwhile.
            OptimisticConcurrencyError: The task changed under us.
            UnsupportedMessageError: Unknown message kind.
        """
        body = message.payload
        kind = body.get("kind")
        if kind not in (TASK_UPSERT, TASK_ATTACH):
            msg = f"Unsupported message kind: {kind!r}"
            raise UnsupportedMessageError(msg)

        tenant = self.tenants.resolve(message.tenant_id)
        task_id = str(body.get("task_id") or message.entity_id)
        event_id = body.get("event_id")

        current = await self.store.get(tenant.data_namespace, task_id)
        data: dict[str, Any] = (
            dict(current.data)
            if current is not None
            else {
                "task_id": task_id,
                "tenant_id": tenant.tenant_id,
                "status": "open",
                "attachments": [],
                "applied_event_ids": [],
            }
        )

        applied: list[str] = list(data.get("applied_event_ids", []))
        if event_id is not None and event_id in applied:
            return ApplyResult.DUPLICATE

        if kind == TASK_UPSERT:
            # A create applied after updates only fills fields the updates left unset
            fill_only = current is not None and body.get("event_type") == "TaskCreated"
            for name, value in (body.get("fields") or {}).items():
                if name in _RESERVED_FIELDS:
                    continue
                if fill_only:
                    data.setdefault(name, value)
                else:
                    data[name] = value
        else:
            attachment = dict(body.get("attachment") or {})
            attachments = [
                a
                for a in data.get("attachments", [])
                if a.get("attachment_id") != attachment.get("attachment_id")
            ]
            attachments.append(attachment)
            data["attachments"] = attachments

        if event_id is not None:
            applied.append(event_id)
            data["applied_event_ids"] = applied[-APPLIED_EVENT_HISTORY:]
            data["last_event_id"] = event_id

        await self.store.put(
            tenant.data_namespace,
            task_id,
            data,
            expected_version=current.version if current is not None else None,
        )
        return ApplyResult.APPLIED


class QueueConsumer:
    """Background consumer of the durable queue.

    Attributes:
        consumer_id: Identity presented to the queue when leasing.
        applied_event_ids: Most recent event ids this consumer applied, oldest first.
    """

    def __init__(
        self,
        queue: DurableQueue,
        applier: TaskStateApplier,
        settings: QueueSettings,
        *,
        consumer_id: str = "core-1",
    ) -> None:
        self.queue = queue
        self.applier = applier
        self.consumer_id = consumer_id
        self.batch_size = settings.batch_size
        self.poll_interval = settings.poll_interval_seconds
        self.applied_event_ids: deque[str] = deque(maxlen=CONSUMER_EVENT_HISTORY)

        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Queue consumer already running", extra={"consumer_id": self.consumer_id})
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=f"consumer:{self.consumer_id}")
        logger.info(
            "Queue consumer started",
            extra={
                "consumer_id": self.consumer_id,
                "batch_size": self.batch_size,
                "poll_interval": self.poll_interval,
            },
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop after the current batch, cancelling if it takes longer than ``timeout``."""
        if not self._running:
            return

        self._running = False

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=timeout)
            except TimeoutError:
                logger.warning("Queue consumer shutdown timed out, cancelling")
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None

        logger.info("Queue consumer stopped", extra={"consumer_id": self.consumer_id})

    async def _run_loop(self) -> None:
        while self._running:
            try:
                processed = await self._process_batch()

                if processed == 0:
                    await asyncio.sleep(self.poll_interval)
                else:
                    # More messages may be waiting; yield and keep going
                    await asyncio.sleep(0)

            except asyncio.CancelledError:
                logger.info("Queue consumer loop cancelled")
                break
            except Exception:
                logger.exception("Error in queue consumer loop")
                await asyncio.sleep(self.poll_interval * 2)

    async def _process_batch(self) -> int:
        processed = 0
        for _ in range(self.batch_size):
            if not self._running or not await self.process_one():
                break
            processed += 1
        return processed

    async def process_one(self) -> bool:
        """Lease and handle one message. Returns False when nothing was eligible."""
        lease = await self.queue.receive(self.consumer_id)
        if lease is None:
            return False
        await self._handle(lease)
        return True

    async def process_available(self, max_messages: int | None = None) -> int:
        """Handle messages until the queue has nothing eligible (tests and drains)."""
        handled = 0
        while max_messages is None or handled < max_messages:
            if not await self.process_one():
                break
            handled += 1
        return handled

    async def _handle(self, lease: Lease) -> None:
        message = lease.message
        kind = str(message.payload.get("kind", "unknown"))
        event_id = message.payload.get("event_id")

        with log_context(
            consumer_id=self.consumer_id,
            message_id=message.message_id,
            ordering_key=message.ordering_key,
            tenant_id=message.tenant_id,
        ):
            try:
                result = await self.applier.apply(message)
            except Exception as exc:
                core_messages_applied_total.labels(kind=kind, result="failed").inc()
                logger.warning(
                    "Failed to apply message, releasing lease",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "delivery_attempts": message.delivery_attempts,
                    },
                )
                try:
                    await self.queue.nack(
                        message.message_id,
                        lease.lease_token,
                        error=f"{type(exc).__name__}: {exc}",
                    )
                except LeaseExpiredError:
                    logger.warning("Lease expired before nack")
                return

            try:
                receipt = await self.queue.ack(message.message_id, lease.lease_token)
            except LeaseExpiredError:
                # Applied, but the message will be delivered again and deduplicated
                logger.warning("Lease expired before ack")
                return

            core_messages_applied_total.labels(kind=kind, result=result.value).inc()
            if result is ApplyResult.APPLIED and event_id is not None:
                self.applied_event_ids.append(event_id)
            logger.info(
                "Message %s",
                result.value,
                extra={
                    "event_id": event_id,
                    "delivery_attempts": receipt.delivery_attempts,
                    "acked_at": receipt.acked_at.isoformat(),
                },
            )


class ConsumerGroup:
    """A fixed set of consumers sharing one queue."""

    def __init__(
        self,
        queue: DurableQueue,
        applier: TaskStateApplier,
        settings: QueueSettings,
    ) -> None:
        self.consumers = [
            QueueConsumer(queue, applier, settings, consumer_id=f"core-{n}")
            for n in range(1, settings.consumer_count + 1)
        ]

    async def start(self) -> None:
        for consumer in self.consumers:
            await consumer.start()

    async def stop(self) -> None:
        await asyncio.gather(*(c.stop() for c in self.consumers))

    async def drain(self) -> int:
        """Apply everything currently eligible using the first consumer."""
        return await self.consumers[0].process_available()

    @property
    def applied_event_ids(self) -> list[str]:
        return [e for c in self.consumers for e in c.applied_event_ids]


__all__ = [
    "APPLIED_EVENT_HISTORY",
    "CONSUMER_EVENT_HISTORY",
    "ApplyResult",
    "ConsumerGroup",
    "QueueConsumer",
    "TaskStateApplier",
    "UnsupportedMessageError",
]
