"""In-process tenant registry.

All reads and writes go through one lock, which gives read-your-writes and
makes concurrent ``register`` calls for the same id race safely: exactly one
wins, the others get ``TenantConflictError``.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from taskhub_service.core.exceptions import TenantConflictError, UnknownTenantError

from .models import Tenant, TenantContext, TenantNamespaces, TenantStatus

logger = logging.getLogger(__name__)


class TenantRegistry:
    """Owns tenant records.

    Tenant ids are never reused: a deactivated tenant keeps its record, so a
    later ``register`` with the same id is a conflict.
    """

    def __init__(self) -> None:
        self._tenants: dict[str, Tenant] = {}
        self._lock = threading.Lock()

    def register(self, tenant_id: str, namespaces: TenantNamespaces) -> TenantContext:
        """Create a tenant and return its context.

        Raises:
            TenantConflictError: If the id was ever registered.
        """
        tenant = Tenant(tenant_id=tenant_id, namespaces=namespaces)
        with self._lock:
            if tenant_id in self._tenants:
                raise TenantConflictError(tenant_id)
            self._tenants[tenant_id] = tenant

        logger.info(
            "Tenant registered",
            extra={
                "tenant_id": tenant_id,
                "data_namespace": namespaces.data_namespace,
                "storage_namespace": namespaces.storage_namespace,
            },
        )
        return tenant.context()

    def resolve(self, tenant_id: str) -> TenantContext:
        """Resolve an active tenant.

        Raises:
            UnknownTenantError: Unregistered or deactivated tenant.
        """
        with self._lock:
            tenant = self._tenants.get(tenant_id)
        if tenant is None or not tenant.is_active:
            raise UnknownTenantError(tenant_id)
        return tenant.context()

    def deactivate(self, tenant_id: str) -> None:
        """Soft-delete an active tenant.

        Raises:
            UnknownTenantError: Unregistered or already deactivated tenant.
        """
        with self._lock:
            tenant = self._tenants.get(tenant_id)
            if tenant is None or not tenant.is_active:
                raise UnknownTenantError(tenant_id)
            self._tenants[tenant_id] = tenant.model_copy(
                update={
                    "status": TenantStatus.DEACTIVATED,
                    "deactivated_at": datetime.now(UTC),
                }
            )

        logger.info("Tenant deactivated", extra={"tenant_id": tenant_id})

    def get(self, tenant_id: str) -> Tenant | None:
        with self._lock:
            return self._tenants.get(tenant_id)

    def list_tenants(self, *, include_inactive: bool = False) -> list[Tenant]:
        with self._lock:
            tenants = list(self._tenants.values())
        if not include_inactive:
            tenants = [t for t in tenants if t.is_active]
        return sorted(tenants, key=lambda t: t.created_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tenants)


__all__ = ["TenantRegistry"]
