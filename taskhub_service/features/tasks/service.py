"""Task service layer.

Writes never touch tenant state directly: every change is published as a
domain event and reaches the data namespace later through the hub, the
handlers and the durable queue. Reads return whatever has been applied.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from taskhub_service.core.events.base import generate_event_id
from taskhub_service.core.events.payloads import AttachmentUploaded, TaskCreated, TaskUpdated
from taskhub_service.core.exceptions import TaskNotFoundError, ValidationException

from .schemas import (
    AttachmentAccepted,
    AttachmentResponse,
    EventAccepted,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)

if TYPE_CHECKING:
    from taskhub_service.core.events.publisher import EventPublisher
    from taskhub_service.core.tenants import TenantContext
    from taskhub_service.infra.storage.protocol import BlobStorage
    from taskhub_service.infra.store.memory import TransactionalStore

logger = logging.getLogger(__name__)

MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024


def attachment_storage_key(task_id: str, attachment_id: str) -> str:
    return f"tasks/{task_id}/attachments/{attachment_id}"


class TaskService:
    """Publishes task events and reads applied task state.

    Example:
        service = TaskService(publisher, storage, store)
        accepted = await service.create_task(tenant, TaskCreate(title="Ship it"))
    """

    def __init__(
        self,
        publisher: EventPublisher,
        storage: BlobStorage,
        store: TransactionalStore,
    ) -> None:
        self._publisher = publisher
        self._storage = storage
        self._store = store

    async def create_task(
        self,
        tenant: TenantContext,
        data: TaskCreate,
        *,
        correlation_id: str | None = None,
    ) -> EventAccepted:
        task_id = data.task_id or generate_event_id()
        payload = TaskCreated(
            task_id=task_id,
            title=data.title,
            description=data.description,
            assignee=data.assignee,
        )
        event_id = await self._publisher.publish(
            tenant.tenant_id,
            TaskCreated.event_type,
            payload.to_payload(),
            correlation_id=correlation_id,
        )
        logger.info("Task creation accepted", extra={"task_id": task_id, "event_id": event_id})
        return EventAccepted(task_id=task_id, event_id=event_id)

    async def update_task(
        self,
        tenant: TenantContext,
        task_id: str,
        data: TaskUpdate,
        *,
        correlation_id: str | None = None,
    ) -> EventAccepted:
        """Publish a ``TaskUpdated`` event.

        Raises:
            ValidationException: The update carries no changes.
        """
        changes = data.changes()
        if not changes:
            raise ValidationException(detail="Update contains no changes", type="empty-update")

        payload = TaskUpdated(task_id=task_id, changes=changes)
        event_id = await self._publisher.publish(
            tenant.tenant_id,
            TaskUpdated.event_type,
            payload.to_payload(),
            correlation_id=correlation_id,
        )
        logger.info(
            "Task update accepted",
            extra={"task_id": task_id, "event_id": event_id, "fields": sorted(changes)},
        )
        return EventAccepted(task_id=task_id, event_id=event_id)

    async def upload_attachment(
        self,
        tenant: TenantContext,
        task_id: str,
        *,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        correlation_id: str | None = None,
    ) -> AttachmentAccepted:
        """Store the blob in the tenant's storage namespace, then publish ``AttachmentUploaded``.

        Raises:
            ValidationException: Empty or oversized upload.
        """
        if not content:
            raise ValidationException(detail="Attachment is empty", type="empty-attachment")
        if len(content) > MAX_ATTACHMENT_BYTES:
            raise ValidationException(
                detail=f"Attachment exceeds {MAX_ATTACHMENT_BYTES} bytes",
                type="attachment-too-large",
                extra={"size_bytes": len(content)},
            )

        attachment_id = generate_event_id()
        storage_key = attachment_storage_key(task_id, attachment_id)
        meta = await self._storage.put(
            tenant.storage_namespace,
            storage_key,
            content,
            content_type=content_type,
            metadata={"task_id": task_id, "filename": filename},
        )

        payload = AttachmentUploaded(
            task_id=task_id,
            attachment_id=attachment_id,
            filename=filename,
            storage_key=storage_key,
            content_type=content_type or "application/octet-stream",
            size_bytes=meta.size_bytes,
        )
        event_id = await self._publisher.publish(
            tenant.tenant_id,
            AttachmentUploaded.event_type,
            payload.to_payload(),
            correlation_id=correlation_id,
        )
        logger.info(
            "Attachment upload accepted",
            extra={"task_id": task_id, "attachment_id": attachment_id, "event_id": event_id},
        )
        return AttachmentAccepted(
            task_id=task_id,
            event_id=event_id,
            attachment_id=attachment_id,
            storage_key=storage_key,
            size_bytes=meta.size_bytes,
        )

    async def get_task(self, tenant: TenantContext, task_id: str) -> TaskResponse:
        """Return the applied state of a task.

        Raises:
            TaskNotFoundError: Nothing has been applied for this task yet.
        """
        entity = await self._store.get(tenant.data_namespace, task_id)
        if entity is None:
            raise TaskNotFoundError(task_id)

        data = entity.data
        return TaskResponse(
            task_id=task_id,
            tenant_id=tenant.tenant_id,
            title=data.get("title"),
            description=data.get("description"),
            assignee=data.get("assignee"),
            status=data.get("status"),
            attachments=[AttachmentResponse(**a) for a in data.get("attachments", [])],
            version=entity.version,
            last_event_id=data.get("last_event_id"),
            updated_at=entity.updated_at,
        )


__all__ = ["MAX_ATTACHMENT_BYTES", "TaskService", "attachment_storage_key"]
