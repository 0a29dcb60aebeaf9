"""Tenant records and the resolved context handed to callers."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

TENANT_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$"


class TenantStatus(StrEnum):
    ACTIVE = "active"
    DEACTIVATED = "deactivated"


class TenantNamespaces(BaseModel):
    """Data and storage namespace pair owned by one tenant."""

    data_namespace: str = Field(min_length=1, max_length=255)
    storage_namespace: str = Field(min_length=1, max_length=255)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def shared(cls, namespace: str) -> TenantNamespaces:
        """Use one name for both the data and the storage namespace."""
        return cls(data_namespace=namespace, storage_namespace=namespace)


class Tenant(BaseModel):
    """Tenant record owned by the registry.

    Created on onboarding, never mutated afterwards except for the soft delete
    performed on offboarding.
    """

    tenant_id: str = Field(pattern=TENANT_ID_PATTERN, description="Opaque unique tenant key")
    namespaces: TenantNamespaces
    status: TenantStatus = TenantStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    deactivated_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status is TenantStatus.ACTIVE

    def context(self) -> TenantContext:
        return TenantContext(
            tenant_id=self.tenant_id,
            data_namespace=self.namespaces.data_namespace,
            storage_namespace=self.namespaces.storage_namespace,
        )


class TenantContext(BaseModel):
    """Resolved, read-only view of an active tenant."""

    tenant_id: str
    data_namespace: str
    storage_namespace: str

    model_config = ConfigDict(frozen=True)

    @property
    def namespaces(self) -> TenantNamespaces:
        return TenantNamespaces(
            data_namespace=self.data_namespace,
            storage_namespace=self.storage_namespace,
        )


__all__ = [
    "TENANT_ID_PATTERN",
    "Tenant",
    "TenantContext",
    "TenantNamespaces",
    "TenantStatus",
]
