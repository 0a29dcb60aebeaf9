"""Admin API endpoints.

Tenant onboarding and offboarding, dead-letter inspection and manual replay.
Every route requires the ``X-Admin-Token`` header.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from taskhub_service.core.dependencies import AdminDep, AdminServiceDep  # noqa: TC001
from taskhub_service.infra.messaging.dlq.store import DeadLetterKind, DeadLetterStatus

from .schemas import (
    DeadLetterListResponse,
    DeadLetterResponse,
    PipelineStatusResponse,
    ReplayResponse,
    TenantListResponse,
    TenantOnboard,
    TenantResponse,
)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[AdminDep])


# ──────────────────────────────────────────────────────────────
# Tenants
# ──────────────────────────────────────────────────────────────


@router.post(
    "/tenants",
    response_model=TenantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Onboard a tenant",
)
async def onboard_tenant(data: TenantOnboard, service: AdminServiceDep) -> TenantResponse:
    return service.onboard(data)


@router.delete(
    "/tenants/{tenant_id}",
    response_model=TenantResponse,
    summary="Offboard a tenant",
    description="Soft delete. The tenant id is never reused.",
)
async def offboard_tenant(tenant_id: str, service: AdminServiceDep) -> TenantResponse:
    return service.offboard(tenant_id)


@router.get("/tenants", response_model=TenantListResponse, summary="List tenants")
async def list_tenants(
    service: AdminServiceDep,
    include_inactive: bool = Query(default=False),
) -> TenantListResponse:
    return service.list_tenants(include_inactive=include_inactive)


# ──────────────────────────────────────────────────────────────
# Dead letters
# ──────────────────────────────────────────────────────────────


@router.get("/dead-letters", response_model=DeadLetterListResponse, summary="List dead letters")
async def list_dead_letters(
    service: AdminServiceDep,
    tenant_id: str | None = None,
    kind: DeadLetterKind | None = None,
    status_filter: DeadLetterStatus | None = Query(default=None, alias="status"),
    source: str | None = None,
) -> DeadLetterListResponse:
    return service.list_dead_letters(
        tenant_id=tenant_id,
        kind=kind,
        status=status_filter,
        source=source,
    )


@router.get(
    "/dead-letters/{entry_id}",
    response_model=DeadLetterResponse,
    summary="Get a dead letter",
)
async def get_dead_letter(entry_id: str, service: AdminServiceDep) -> DeadLetterResponse:
    return service.get_dead_letter(entry_id)


@router.post(
    "/dead-letters/{entry_id}/replay",
    response_model=ReplayResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Replay a dead letter",
    description="Resubmits the event to its handler or the message to its ordering key. "
    "Each entry can be replayed once.",
)
async def replay_dead_letter(entry_id: str, service: AdminServiceDep) -> ReplayResponse:
    return await service.replay(entry_id)


# ──────────────────────────────────────────────────────────────
# Status
# ──────────────────────────────────────────────────────────────


@router.get("/status", response_model=PipelineStatusResponse, summary="Pipeline status")
async def pipeline_status(service: AdminServiceDep) -> PipelineStatusResponse:
    return await service.pipeline_status()
