"""Unit tests for the in-memory blob storage and transactional store."""

from __future__ import annotations

import asyncio

import pytest

from taskhub_service.core.exceptions import OptimisticConcurrencyError
from taskhub_service.infra.storage import InMemoryBlobStorage
from taskhub_service.infra.store import InMemoryTransactionalStore


@pytest.mark.unit
class TestInMemoryBlobStorage:
    async def test_put_get_head(self):
        storage = InMemoryBlobStorage()

        meta = await storage.put("ns-1", "a/b.txt", b"hello", content_type="text/plain")

        assert meta.size_bytes == 5
        assert await storage.get("ns-1", "a/b.txt") == b"hello"
        assert (await storage.head("ns-1", "a/b.txt")).etag == meta.etag

    async def test_namespaces_are_isolated(self):
        storage = InMemoryBlobStorage()
        await storage.put("ns-1", "key", b"one")

        assert await storage.exists("ns-2", "key") is False
        assert await storage.head("ns-2", "key") is None
        with pytest.raises(KeyError):
            await storage.get("ns-2", "key")

    async def test_delete(self):
        storage = InMemoryBlobStorage()
        await storage.put("ns-1", "key", b"x")

        assert await storage.delete("ns-1", "key") is True
        assert await storage.delete("ns-1", "key") is False
        assert storage.keys("ns-1") == []


@pytest.mark.unit
class TestInMemoryTransactionalStore:
    """Optimistic concurrency on put()."""

    async def test_create_requires_absent(self):
        store = InMemoryTransactionalStore()

        entity = await store.put("ns-1", "42", {"title": "a"}, expected_version=None)

        assert entity.version == 1
        with pytest.raises(OptimisticConcurrencyError):
            await store.put("ns-1", "42", {"title": "b"}, expected_version=None)

    async def test_update_with_matching_version(self):
        store = InMemoryTransactionalStore()
        await store.put("ns-1", "42", {"title": "a"}, expected_version=None)

        entity = await store.put("ns-1", "42", {"title": "b"}, expected_version=1)

        assert entity.version == 2
        assert (await store.get("ns-1", "42")).data == {"title": "b"}

    async def test_stale_version_rejected(self):
        store = InMemoryTransactionalStore()
        await store.put("ns-1", "42", {}, expected_version=None)
        await store.put("ns-1", "42", {}, expected_version=1)

        with pytest.raises(OptimisticConcurrencyError) as exc_info:
            await store.put("ns-1", "42", {}, expected_version=1)

        assert exc_info.value.actual == 2

    async def test_concurrent_writers_one_wins(self):
        store = InMemoryTransactionalStore()
        await store.put("ns-1", "42", {}, expected_version=None)

        results = await asyncio.gather(
            *(store.put("ns-1", "42", {"n": n}, expected_version=1) for n in range(5)),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1

    async def test_namespaces_are_isolated(self):
        store = InMemoryTransactionalStore()
        await store.put("ns-1", "42", {"t": 1}, expected_version=None)

        assert await store.get("ns-2", "42") is None
        assert [e.entity_id for e in await store.list_namespace("ns-1")] == ["42"]
