"""Built-in event handlers.

Neither handler writes tenant state directly: each turns an event into a
queue message keyed ``<tenant_id>:<task_id>`` and lets the core service apply
it in per-key order. The dedup id of every message is derived from the event
id and the handler id, so a redelivered event cannot enqueue twice.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from taskhub_service.core.events.payloads import (
    AttachmentUploaded,
    FileStored,
    TaskCreated,
    TaskUpdated,
)
from taskhub_service.core.events.registry import payload_registry
from taskhub_service.core.exceptions import FatalError, RetryableError, UnknownTenantError
from taskhub_service.infra.queue.models import make_ordering_key

from .base import IdempotentHandler

if TYPE_CHECKING:
    from taskhub_service.core.events.base import Event
    from taskhub_service.core.tenants import TenantRegistry
    from taskhub_service.infra.queue.durable import DurableQueue
    from taskhub_service.infra.storage.protocol import BlobStorage

    from .dedup import ProcessedIdStore

logger = logging.getLogger(__name__)

TASK_UPSERT = "task.upsert"
TASK_ATTACH = "task.attach"


def message_dedup_id(event: Event, handler_id: str) -> str:
    return f"{event.event_id}:{handler_id}"


class TaskProjectionHandler(IdempotentHandler):
    """Project ``Task*`` events into ``task.upsert`` queue messages."""

    handler_id = "task-projection"
    patterns = ("Task*",)

    def __init__(self, processed: ProcessedIdStore, queue: DurableQueue) -> None:
        super().__init__(processed)
        self.queue = queue

    async def apply(self, event: Event) -> None:
        payload = payload_registry.parse(event)
        body: dict[str, Any] = {
            "kind": TASK_UPSERT,
            "event_id": event.event_id,
            "event_type": event.event_type,
            "tenant_id": event.tenant_id,
            "occurred_at": event.created_at.isoformat(),
        }

        match payload:
            case TaskCreated():
                body["task_id"] = payload.task_id
                body["fields"] = {
                    "title": payload.title,
                    "description": payload.description,
                    "assignee": payload.assignee,
                }
            case TaskUpdated():
                body["task_id"] = payload.task_id
                body["fields"] = dict(payload.changes)
            case _:
                # Task* types without a registered variant still carry a task id
                task_id = event.entity_id()
                if task_id is None:
                    msg = f"{event.event_type} payload has no task_id"
                    raise FatalError(msg)
                body["task_id"] = task_id
                body["fields"] = {k: v for k, v in event.payload.items() if k != "task_id"}

        message_id = await self.queue.enqueue(
            make_ordering_key(event.tenant_id, body["task_id"]),
            body,
            dedup_id=message_dedup_id(event, self.handler_id),
        )
        logger.info(
            "Task projection enqueued",
            extra={"task_id": body["task_id"], "message_id": message_id},
        )


class AttachmentIndexerHandler(IdempotentHandler):
    """Verify uploaded blobs and link them to their task.

    The blob must exist in the tenant's storage namespace; a missing blob is
    retried since storage writes may land after the event.
    """

    handler_id = "attachment-indexer"
    patterns = ("AttachmentUploaded", "FileStored")

    def __init__(
        self,
        processed: ProcessedIdStore,
        queue: DurableQueue,
        tenants: TenantRegistry,
        storage: BlobStorage,
    ) -> None:
        super().__init__(processed)
        self.queue = queue
        self.tenants = tenants
        self.storage = storage

    async def apply(self, event: Event) -> None:
        payload = payload_registry.parse(event)
        if not isinstance(payload, AttachmentUploaded | FileStored):
            msg = f"attachment-indexer cannot handle {event.event_type}"
            raise FatalError(msg)

        try:
            tenant = self.tenants.resolve(event.tenant_id)
        except UnknownTenantError as exc:
            raise FatalError(str(exc)) from exc

        meta = await self.storage.head(tenant.storage_namespace, payload.storage_key)
        if meta is None:
            msg = f"Blob {payload.storage_key} not found in {tenant.storage_namespace}"
            raise RetryableError(msg)

        if payload.task_id is None or payload.attachment_id is None:
            logger.info(
                "Stored file is not linked to a task",
                extra={"storage_key": payload.storage_key},
            )
            return

        attachment: dict[str, Any] = {
            "attachment_id": payload.attachment_id,
            "storage_key": payload.storage_key,
            "size_bytes": meta.size_bytes,
            "content_type": meta.content_type,
            "etag": meta.etag,
        }
        if isinstance(payload, AttachmentUploaded):
            attachment["filename"] = payload.filename
            attachment["content_type"] = payload.content_type

        message_id = await self.queue.enqueue(
            make_ordering_key(event.tenant_id, payload.task_id),
            {
                "kind": TASK_ATTACH,
                "event_id": event.event_id,
                "event_type": event.event_type,
                "tenant_id": event.tenant_id,
                "task_id": payload.task_id,
                "attachment": attachment,
                "occurred_at": event.created_at.isoformat(),
            },
            dedup_id=message_dedup_id(event, self.handler_id),
        )
        logger.info(
            "Attachment indexed",
            extra={
                "task_id": payload.task_id,
                "attachment_id": payload.attachment_id,
                "message_id": message_id,
            },
        )


__all__ = [
    "TASK_ATTACH",
    "TASK_UPSERT",
    "AttachmentIndexerHandler",
    "TaskProjectionHandler",
    "message_dedup_id",
]
