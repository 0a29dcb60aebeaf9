"""Blob storage collaborator."""

from .memory import InMemoryBlobStorage
from .protocol import BlobStorage, ObjectMetadata

__all__ = ["BlobStorage", "InMemoryBlobStorage", "ObjectMetadata"]
