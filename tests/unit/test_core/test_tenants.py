"""Unit tests for the tenant registry."""

from __future__ import annotations

import threading

import pytest
from pydantic import ValidationError

from taskhub_service.core.exceptions import TenantConflictError, UnknownTenantError
from taskhub_service.core.tenants import TenantNamespaces, TenantRegistry, TenantStatus


@pytest.fixture
def registry() -> TenantRegistry:
    return TenantRegistry()


@pytest.mark.unit
class TestRegister:
    """Tests for register()."""

    def test_resolve_returns_registered_namespaces(self, registry):
        namespaces = TenantNamespaces(data_namespace="db-t1", storage_namespace="blob-t1")

        registered = registry.register("T1", namespaces)
        resolved = registry.resolve("T1")

        assert resolved == registered
        assert resolved.namespaces == namespaces

    def test_shared_namespace(self, registry):
        context = registry.register("T1", TenantNamespaces.shared("ns-1"))

        assert context.data_namespace == "ns-1"
        assert context.storage_namespace == "ns-1"

    def test_duplicate_is_conflict(self, registry):
        registry.register("T1", TenantNamespaces.shared("ns-1"))

        with pytest.raises(TenantConflictError):
            registry.register("T1", TenantNamespaces.shared("ns-other"))

        assert registry.resolve("T1").data_namespace == "ns-1"

    def test_rejects_malformed_id(self, registry):
        with pytest.raises(ValidationError):
            registry.register("bad id!", TenantNamespaces.shared("ns"))

    def test_concurrent_register_exactly_one_wins(self, registry):
        results: list[str] = []
        barrier = threading.Barrier(8)

        def attempt(n: int) -> None:
            barrier.wait()
            try:
                registry.register("T1", TenantNamespaces.shared(f"ns-{n}"))
                results.append("ok")
            except TenantConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=attempt, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 7


@pytest.mark.unit
class TestResolveAndDeactivate:
    """Tests for resolve() and deactivate()."""

    def test_unknown_tenant(self, registry):
        with pytest.raises(UnknownTenantError):
            registry.resolve("nobody")

    def test_deactivated_tenant_no_longer_resolves(self, registry):
        registry.register("T1", TenantNamespaces.shared("ns-1"))

        registry.deactivate("T1")

        with pytest.raises(UnknownTenantError):
            registry.resolve("T1")
        tenant = registry.get("T1")
        assert tenant.status is TenantStatus.DEACTIVATED
        assert tenant.deactivated_at is not None

    def test_deactivate_twice_is_not_found(self, registry):
        registry.register("T1", TenantNamespaces.shared("ns-1"))
        registry.deactivate("T1")

        with pytest.raises(UnknownTenantError):
            registry.deactivate("T1")

    def test_deactivated_id_is_never_reused(self, registry):
        registry.register("T1", TenantNamespaces.shared("ns-1"))
        registry.deactivate("T1")

        with pytest.raises(TenantConflictError):
            registry.register("T1", TenantNamespaces.shared("ns-1"))

    def test_list_hides_inactive_by_default(self, registry):
        registry.register("T1", TenantNamespaces.shared("ns-1"))
        registry.register("T2", TenantNamespaces.shared("ns-2"))
        registry.deactivate("T1")

        assert [t.tenant_id for t in registry.list_tenants()] == ["T2"]
        assert len(registry.list_tenants(include_inactive=True)) == 2
        assert len(registry) == 2
