"""Unit tests for the core consumer: applying queue messages to tenant state."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from taskhub_service.core.exceptions import UnknownTenantError
from taskhub_service.features.tasks.consumer import (
    ApplyResult,
    QueueConsumer,
    UnsupportedMessageError,
)
from taskhub_service.infra.messaging.dlq.store import DeadLetterKind, DeadLetterReason
from taskhub_service.infra.queue import QueueMessage
from taskhub_service.workers.handlers import TASK_ATTACH, TASK_UPSERT


def _message(body: dict, key: str = "T1:42") -> QueueMessage:
    return QueueMessage(
        message_id="m-1",
        ordering_key=key,
        payload=body,
        enqueued_at=datetime(2026, 1, 1, tzinfo=UTC),
    )


def _upsert(event_id: str, event_type: str = "TaskCreated", **fields) -> dict:
    return {
        "kind": TASK_UPSERT,
        "event_id": event_id,
        "event_type": event_type,
        "tenant_id": "T1",
        "task_id": "42",
        "fields": fields,
    }


# ============================================================================
# Applier
# ============================================================================


@pytest.mark.unit
class TestTaskStateApplier:
    async def test_create_then_update(self, container, tenant):
        applier = container.applier

        assert await applier.apply(_message(_upsert("e-1", title="Draft"))) is ApplyResult.APPLIED
        await applier.apply(_message(_upsert("e-2", "TaskUpdated", title="Final")))

        entity = await container.store.get("ns-1", "42")
        assert entity.version == 2
        assert entity.data["title"] == "Final"
        assert entity.data["status"] == "open"
        assert entity.data["last_event_id"] == "e-2"

    async def test_update_before_create_starts_open(self, container, tenant):
        await container.applier.apply(_message(_upsert("e-2", "TaskUpdated", title="Final")))

        data = (await container.store.get("ns-1", "42")).data
        assert data["status"] == "open"
        assert data["title"] == "Final"

    async def test_late_create_only_fills_missing_fields(self, container, tenant):
        await container.applier.apply(_message(_upsert("e-2", "TaskUpdated", title="Final")))

        await container.applier.apply(
            _message(_upsert("e-1", title="Draft", description="first cut"))
        )

        entity = await container.store.get("ns-1", "42")
        assert entity.version == 2
        assert entity.data["title"] == "Final"
        assert entity.data["description"] == "first cut"
        assert entity.data["applied_event_ids"] == ["e-2", "e-1"]

    async def test_same_event_applies_once(self, container, tenant):
        message = _message(_upsert("e-1", title="Draft"))

        await container.applier.apply(message)
        result = await container.applier.apply(message)

        assert result is ApplyResult.DUPLICATE
        assert (await container.store.get("ns-1", "42")).version == 1

    async def test_reserved_fields_are_not_overwritten(self, container, tenant):
        await container.applier.apply(_message(_upsert("e-1", tenant_id="T2", attachments="x")))

        data = (await container.store.get("ns-1", "42")).data
        assert data["tenant_id"] == "T1"
        assert data["attachments"] == []

    async def test_attach_replaces_same_attachment(self, container, tenant):
        def attach(event_id: str, size: int) -> dict:
            return {
                "kind": TASK_ATTACH,
                "event_id": event_id,
                "task_id": "42",
                "attachment": {"attachment_id": "a-1", "storage_key": "k", "size_bytes": size},
            }

        await container.applier.apply(_message(attach("e-1", 10)))
        await container.applier.apply(_message(attach("e-2", 20)))

        attachments = (await container.store.get("ns-1", "42")).data["attachments"]
        assert attachments == [{"attachment_id": "a-1", "storage_key": "k", "size_bytes": 20}]

    async def test_unsupported_kind(self, container, tenant):
        with pytest.raises(UnsupportedMessageError):
            await container.applier.apply(_message({"kind": "task.delete"}))

    async def test_deactivated_tenant(self, container, tenant):
        container.tenants.deactivate("T1")

        with pytest.raises(UnknownTenantError):
            await container.applier.apply(_message(_upsert("e-1")))


# ============================================================================
# Consumer
# ============================================================================


@pytest.mark.unit
class TestQueueConsumer:
    """Tests for leasing, acking and nacking through QueueConsumer."""

    @pytest.fixture
    def consumer(self, container) -> QueueConsumer:
        return QueueConsumer(container.queue, container.applier, container.settings.queue)

    async def test_applies_in_key_order_and_acks(self, container, tenant, consumer):
        await container.queue.enqueue("T1:42", _upsert("e-1", title="one"))
        await container.queue.enqueue("T1:42", _upsert("e-2", "TaskUpdated", title="two"))

        assert await consumer.process_available() == 2

        assert list(consumer.applied_event_ids) == ["e-1", "e-2"]
        assert await container.queue.pending_count() == 0
        assert (await container.store.get("ns-1", "42")).data["title"] == "two"

    async def test_empty_queue(self, consumer):
        assert await consumer.process_one() is False

    async def test_failing_message_is_dead_lettered(self, container, tenant, consumer):
        await container.queue.enqueue("T1:42", {"kind": "task.delete", "task_id": "42"})

        handled = await consumer.process_available()

        assert handled == container.settings.queue.max_delivery_attempts
        assert await container.queue.pending_count() == 0
        [entry] = container.dead_letters.list_entries()
        assert entry.kind is DeadLetterKind.MESSAGE
        assert entry.reason is DeadLetterReason.MAX_DELIVERIES_EXCEEDED
        assert entry.source == "T1:42"
        assert entry.last_error.startswith("UnsupportedMessageError")

    async def test_duplicate_enqueue_applied_once(self, container, tenant, consumer):
        body = _upsert("e-1", title="one")
        await container.queue.enqueue("T1:42", body)
        await container.queue.enqueue("T1:42", body)

        await consumer.process_available()

        assert list(consumer.applied_event_ids) == ["e-1"]
        assert (await container.store.get("ns-1", "42")).version == 1

    async def test_background_loop(self, container, tenant, consumer):
        await consumer.start()
        await consumer.start()
        try:
            await container.queue.enqueue("T1:42", _upsert("e-1", title="bg"))
            for _ in range(200):
                if consumer.applied_event_ids:
                    break
                await asyncio.sleep(0.01)
        finally:
            await consumer.stop()

        assert list(consumer.applied_event_ids) == ["e-1"]
        assert consumer.is_running is False


@pytest.mark.unit
class TestConsumerGroup:
    async def test_consumer_ids(self, container):
        assert [c.consumer_id for c in container.consumers.consumers] == ["core-1"]

    async def test_drain(self, container, tenant):
        await container.queue.enqueue("T1:1", _upsert("e-1"))
        await container.queue.enqueue("T1:2", _upsert("e-2"))

        assert await container.consumers.drain() == 2
        assert sorted(container.consumers.applied_event_ids) == ["e-1", "e-2"]
