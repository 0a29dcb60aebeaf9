"""Pydantic schemas for the task API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from taskhub_service.core.schemas import CustomBase

# ──────────────────────────────────────────────────────────────
# Requests
# ──────────────────────────────────────────────────────────────


class TaskCreate(CustomBase):
    """Create a task. A UUID v7 task id is assigned when none is given."""

    task_id: str | None = Field(
        None,
        alias="taskId",
        min_length=1,
        max_length=128,
        pattern=r"^[A-Za-z0-9_.-]+$",
        description="Client-chosen task id",
    )
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=10_000)
    assignee: str | None = Field(None, max_length=255)


class TaskUpdate(CustomBase):
    """Partial update; only fields present in the request are changed."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=10_000)
    assignee: str | None = Field(None, max_length=255)
    status: str | None = Field(None, max_length=50)

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


# ──────────────────────────────────────────────────────────────
# Responses
# ──────────────────────────────────────────────────────────────


class EventAccepted(CustomBase):
    """The change was recorded as an event and will be applied asynchronously."""

    task_id: str
    event_id: str
    status: str = "accepted"


class AttachmentAccepted(EventAccepted):
    attachment_id: str
    storage_key: str
    size_bytes: int


class AttachmentResponse(CustomBase):
    attachment_id: str
    storage_key: str
    filename: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    etag: str | None = None


class TaskResponse(CustomBase):
    """Applied task state as held by the tenant's data namespace."""

    task_id: str
    tenant_id: str
    title: str | None = None
    description: str | None = None
    assignee: str | None = None
    status: str | None = None
    attachments: list[AttachmentResponse] = Field(default_factory=list)
    version: int = Field(..., description="Optimistic concurrency version")
    last_event_id: str | None = None
    updated_at: datetime


__all__ = [
    "AttachmentAccepted",
    "AttachmentResponse",
    "EventAccepted",
    "TaskCreate",
    "TaskResponse",
    "TaskUpdate",
]
