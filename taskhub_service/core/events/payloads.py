"""Payload variants for the task domain.

``task_id`` is accepted both as ``task_id`` and as the camel-case ``taskId``
and is normalized to a string, so ``{"taskId": 42}`` and ``{"task_id": "42"}``
describe the same task.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import Field

from .base import EventPayload
from .registry import payload_registry


@payload_registry.register
class TaskCreated(EventPayload):
    """A task was created."""

    event_type: ClassVar[str] = "TaskCreated"
    schema_version: ClassVar[int] = 1

    task_id: str = Field(alias="taskId", min_length=1, max_length=200)
    title: str = Field(default="", max_length=500)
    description: str | None = Field(default=None, max_length=10_000)
    assignee: str | None = Field(default=None, max_length=200)


@payload_registry.register
class TaskUpdated(EventPayload):
    """Fields of a task changed."""

    event_type: ClassVar[str] = "TaskUpdated"
    schema_version: ClassVar[int] = 1

    task_id: str = Field(alias="taskId", min_length=1, max_length=200)
    changes: dict[str, Any] = Field(default_factory=dict)


@payload_registry.register
class AttachmentUploaded(EventPayload):
    """An attachment was uploaded for a task and written to blob storage."""

    event_type: ClassVar[str] = "AttachmentUploaded"
    schema_version: ClassVar[int] = 1

    task_id: str = Field(alias="taskId", min_length=1, max_length=200)
    attachment_id: str = Field(alias="attachmentId", min_length=1)
    filename: str = Field(min_length=1, max_length=255)
    storage_key: str = Field(alias="storageKey", min_length=1)
    content_type: str = Field(default="application/octet-stream", alias="contentType")
    size_bytes: int = Field(default=0, ge=0, alias="sizeBytes")


@payload_registry.register
class FileStored(EventPayload):
    """A blob landed in the tenant's storage namespace."""

    event_type: ClassVar[str] = "FileStored"
    schema_version: ClassVar[int] = 1

    storage_key: str = Field(alias="storageKey", min_length=1)
    task_id: str | None = Field(default=None, alias="taskId")
    attachment_id: str | None = Field(default=None, alias="attachmentId")


__all__ = ["AttachmentUploaded", "FileStored", "TaskCreated", "TaskUpdated"]
