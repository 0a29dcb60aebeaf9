"""In-memory blob storage."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime

from .protocol import ObjectMetadata


class InMemoryBlobStorage:
    """Blob storage kept in a dict keyed by (namespace, key)."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], tuple[bytes, ObjectMetadata]] = {}

    async def put(
        self,
        namespace: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectMetadata:
        meta = ObjectMetadata(
            namespace=namespace,
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            etag=hashlib.md5(data, usedforsecurity=False).hexdigest(),
            last_modified=datetime.now(UTC),
            custom_metadata=dict(metadata or {}),
        )
        self._objects[(namespace, key)] = (bytes(data), meta)
        return meta

    async def get(self, namespace: str, key: str) -> bytes:
        try:
            return self._objects[(namespace, key)][0]
        except KeyError:
            raise KeyError(f"{namespace}/{key}") from None

    async def delete(self, namespace: str, key: str) -> bool:
        return self._objects.pop((namespace, key), None) is not None

    async def exists(self, namespace: str, key: str) -> bool:
        return (namespace, key) in self._objects

    async def head(self, namespace: str, key: str) -> ObjectMetadata | None:
        entry = self._objects.get((namespace, key))
        return entry[1] if entry is not None else None

    def keys(self, namespace: str) -> list[str]:
        return sorted(k for ns, k in self._objects if ns == namespace)


__all__ = ["InMemoryBlobStorage"]
