"""Blob storage protocol and normalized data structures.

Keys are always relative to a tenant's storage namespace; backends never see
a key outside the namespace they were given.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata of a stored blob.

    Attributes:
        namespace: Tenant storage namespace.
        key: Object key inside the namespace.
        size_bytes: Object size in bytes.
        content_type: MIME type.
        etag: Content hash.
        last_modified: Write timestamp (UTC).
    """

    namespace: str
    key: str
    size_bytes: int
    content_type: str | None
    etag: str
    last_modified: datetime
    custom_metadata: dict[str, str] = field(default_factory=dict)


class BlobStorage(Protocol):
    """Put/get/delete-by-key interface for large binary payloads."""

    async def put(
        self,
        namespace: str,
        key: str,
        data: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> ObjectMetadata: ...

    async def get(self, namespace: str, key: str) -> bytes:
        """Raises KeyError when the object does not exist."""
        ...

    async def delete(self, namespace: str, key: str) -> bool: ...

    async def exists(self, namespace: str, key: str) -> bool: ...

    async def head(self, namespace: str, key: str) -> ObjectMetadata | None: ...


__all__ = ["BlobStorage", "ObjectMetadata"]
