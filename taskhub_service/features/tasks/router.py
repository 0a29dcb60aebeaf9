"""API router for tasks.

Writes answer ``202 Accepted``: the change is recorded as an event and applied
asynchronously, so a read right after a write may not reflect it yet.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, File, Request, UploadFile, status

# Dependency aliases must be importable at runtime for FastAPI
from taskhub_service.core.dependencies import TaskServiceDep, TenantDep  # noqa: TC001
from taskhub_service.core.exceptions import ValidationException

from .schemas import AttachmentAccepted, EventAccepted, TaskCreate, TaskResponse, TaskUpdate

router = APIRouter(prefix="/tasks", tags=["tasks"])

logger = logging.getLogger(__name__)


def _correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


@router.post(
    "",
    response_model=EventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Create a task",
)
async def create_task(
    data: TaskCreate,
    request: Request,
    tenant: TenantDep,
    service: TaskServiceDep,
) -> EventAccepted:
    """Publish ``TaskCreated`` for the caller's tenant."""
    return await service.create_task(tenant, data, correlation_id=_correlation_id(request))


@router.patch(
    "/{task_id}",
    response_model=EventAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Update a task",
)
async def update_task(
    task_id: str,
    data: TaskUpdate,
    request: Request,
    tenant: TenantDep,
    service: TaskServiceDep,
) -> EventAccepted:
    return await service.update_task(
        tenant,
        task_id,
        data,
        correlation_id=_correlation_id(request),
    )


@router.post(
    "/{task_id}/attachments",
    response_model=AttachmentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload an attachment",
    description="Multipart upload. The blob is stored in the tenant's storage namespace "
    "before the AttachmentUploaded event is published.",
)
async def upload_attachment(
    task_id: str,
    file: Annotated[UploadFile, File(...)],
    request: Request,
    tenant: TenantDep,
    service: TaskServiceDep,
) -> AttachmentAccepted:
    if not file.filename:
        raise ValidationException(detail="Filename is required", type="missing-filename")

    content = await file.read()
    return await service.upload_attachment(
        tenant,
        task_id,
        filename=file.filename,
        content=content,
        content_type=file.content_type,
        correlation_id=_correlation_id(request),
    )


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get a task",
    description="Returns the task state applied so far.",
)
async def get_task(task_id: str, tenant: TenantDep, service: TaskServiceDep) -> TaskResponse:
    return await service.get_task(tenant, task_id)
