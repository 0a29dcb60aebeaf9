"""Tenant-namespaced structured store with optimistic concurrency.

Every entity carries an integer version. ``put`` succeeds only when the
caller's ``expected_version`` matches the stored one (``None`` means "must
not exist yet") and returns the new version.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from taskhub_service.core.exceptions import OptimisticConcurrencyError


@dataclass(frozen=True)
class StoredEntity:
    namespace: str
    entity_id: str
    data: dict[str, Any]
    version: int
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class TransactionalStore(Protocol):
    async def get(self, namespace: str, entity_id: str) -> StoredEntity | None: ...

    async def put(
        self,
        namespace: str,
        entity_id: str,
        data: dict[str, Any],
        expected_version: int | None,
    ) -> StoredEntity:
        """Raises OptimisticConcurrencyError on a version mismatch."""
        ...


class InMemoryTransactionalStore:
    def __init__(self) -> None:
        self._entities: dict[tuple[str, str], StoredEntity] = {}
        self._lock = asyncio.Lock()

    async def get(self, namespace: str, entity_id: str) -> StoredEntity | None:
        return self._entities.get((namespace, entity_id))

    async def put(
        self,
        namespace: str,
        entity_id: str,
        data: dict[str, Any],
        expected_version: int | None,
    ) -> StoredEntity:
        async with self._lock:
            current = self._entities.get((namespace, entity_id))
            actual = current.version if current is not None else None
            if actual != expected_version:
                raise OptimisticConcurrencyError(namespace, entity_id, expected_version, actual)
            entity = StoredEntity(
                namespace=namespace,
                entity_id=entity_id,
                data=dict(data),
                version=(actual or 0) + 1,
            )
            self._entities[(namespace, entity_id)] = entity
            return entity

    async def list_namespace(self, namespace: str) -> list[StoredEntity]:
        return [e for (ns, _), e in sorted(self._entities.items()) if ns == namespace]


__all__ = ["InMemoryTransactionalStore", "StoredEntity", "TransactionalStore"]
