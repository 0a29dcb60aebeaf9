"""Unit tests for TaskService: writes go through events, reads see applied state."""

from __future__ import annotations

import pytest

from taskhub_service.core.exceptions import TaskNotFoundError, ValidationException
from taskhub_service.features.tasks.schemas import TaskCreate, TaskUpdate
from taskhub_service.features.tasks.service import attachment_storage_key


@pytest.mark.unit
class TestTaskService:
    async def test_create_is_eventually_applied(self, container, tenant):
        accepted = await container.tasks.create_task(
            tenant, TaskCreate(task_id="42", title="Write docs")
        )

        assert accepted.status == "accepted"
        assert accepted.task_id == "42"

        await container.settle()
        task = await container.tasks.get_task(tenant, "42")

        assert task.title == "Write docs"
        assert task.status == "open"
        assert task.version == 1
        assert task.last_event_id == accepted.event_id

    async def test_generated_task_id(self, container, tenant):
        accepted = await container.tasks.create_task(tenant, TaskCreate(title="No id"))

        assert len(accepted.task_id) == 36

    async def test_correlation_id_is_recorded(self, container, tenant):
        accepted = await container.tasks.create_task(
            tenant, TaskCreate(title="Traced"), correlation_id="req-1"
        )

        event = await container.event_log.get(accepted.event_id)
        assert event.correlation_id == "req-1"

    async def test_update(self, container, tenant):
        await container.tasks.create_task(tenant, TaskCreate(task_id="42", title="Draft"))
        await container.tasks.update_task(tenant, "42", TaskUpdate(status="done"))
        await container.settle()

        task = await container.tasks.get_task(tenant, "42")

        assert task.status == "done"
        assert task.title == "Draft"
        assert task.version == 2

    async def test_empty_update_rejected(self, container, tenant):
        with pytest.raises(ValidationException) as exc_info:
            await container.tasks.update_task(tenant, "42", TaskUpdate())

        assert exc_info.value.type == "empty-update"

    async def test_unknown_task(self, container, tenant):
        with pytest.raises(TaskNotFoundError):
            await container.tasks.get_task(tenant, "missing")

    async def test_tenants_are_isolated(self, container, tenant, other_tenant):
        await container.tasks.create_task(tenant, TaskCreate(task_id="42", title="Mine"))
        await container.settle()

        with pytest.raises(TaskNotFoundError):
            await container.tasks.get_task(other_tenant, "42")


@pytest.mark.unit
class TestAttachments:
    async def test_upload_stores_blob_and_links_it(self, container, tenant):
        await container.tasks.create_task(tenant, TaskCreate(task_id="42", title="Docs"))

        accepted = await container.tasks.upload_attachment(
            tenant,
            "42",
            filename="notes.txt",
            content=b"hello",
            content_type="text/plain",
        )
        await container.settle()

        assert accepted.storage_key == attachment_storage_key("42", accepted.attachment_id)
        assert await container.storage.get("ns-1", accepted.storage_key) == b"hello"
        task = await container.tasks.get_task(tenant, "42")
        [attachment] = task.attachments
        assert attachment.attachment_id == accepted.attachment_id
        assert attachment.filename == "notes.txt"
        assert attachment.size_bytes == 5

    async def test_empty_upload_rejected(self, container, tenant):
        with pytest.raises(ValidationException) as exc_info:
            await container.tasks.upload_attachment(tenant, "42", filename="x", content=b"")

        assert exc_info.value.type == "empty-attachment"
        assert container.storage.keys("ns-1") == []
