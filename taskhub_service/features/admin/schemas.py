"""Schemas for the administrative API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from taskhub_service.core.schemas import CustomBase
from taskhub_service.core.tenants.models import TENANT_ID_PATTERN, Tenant
from taskhub_service.infra.messaging.dlq.store import DeadLetterEntry

# ──────────────────────────────────────────────────────────────
# Tenants
# ──────────────────────────────────────────────────────────────


class TenantOnboard(CustomBase):
    """Onboard a tenant.

    Namespaces default to the configured templates; ``token`` registers a
    bearer token for the new tenant.
    """

    tenant_id: str = Field(..., pattern=TENANT_ID_PATTERN)
    data_namespace: str | None = Field(None, min_length=1, max_length=255)
    storage_namespace: str | None = Field(None, min_length=1, max_length=255)
    token: str | None = Field(None, min_length=8, max_length=512)


class TenantResponse(CustomBase):
    tenant_id: str
    data_namespace: str
    storage_namespace: str
    status: str
    created_at: datetime
    deactivated_at: datetime | None = None

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> TenantResponse:
        return cls(
            tenant_id=tenant.tenant_id,
            data_namespace=tenant.namespaces.data_namespace,
            storage_namespace=tenant.namespaces.storage_namespace,
            status=tenant.status.value,
            created_at=tenant.created_at,
            deactivated_at=tenant.deactivated_at,
        )


class TenantListResponse(CustomBase):
    items: list[TenantResponse]
    total: int


# ──────────────────────────────────────────────────────────────
# Dead letters
# ──────────────────────────────────────────────────────────────


class DeadLetterResponse(CustomBase):
    entry_id: str
    kind: str
    tenant_id: str
    source: str = Field(..., description="Handler id for events, ordering key for messages")
    reason: str
    attempts: int
    last_error: str | None = None
    body: dict[str, Any]
    dead_lettered_at: datetime
    status: str
    replayed_at: datetime | None = None

    @classmethod
    def from_entry(cls, entry: DeadLetterEntry) -> DeadLetterResponse:
        return cls.model_validate(entry.model_dump(mode="json"))


class DeadLetterListResponse(CustomBase):
    items: list[DeadLetterResponse]
    total: int


class ReplayResponse(CustomBase):
    entry_id: str
    kind: str
    status: str = "replayed"
    event_id: str | None = None
    handler_id: str | None = None
    message_id: str | None = None


# ──────────────────────────────────────────────────────────────
# Pipeline status
# ──────────────────────────────────────────────────────────────


class PipelineStatusResponse(CustomBase):
    tenants_active: int
    events_recorded: int
    deliveries_in_flight: int
    subscriptions: dict[str, list[str]]
    subscription_version: int
    queue_pending: int
    queue_in_flight: int
    dead_letters_pending: int


__all__ = [
    "DeadLetterListResponse",
    "DeadLetterResponse",
    "PipelineStatusResponse",
    "ReplayResponse",
    "TenantListResponse",
    "TenantOnboard",
    "TenantResponse",
]
