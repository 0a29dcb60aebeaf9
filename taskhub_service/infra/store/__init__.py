"""Transactional store collaborator."""

from .memory import InMemoryTransactionalStore, StoredEntity, TransactionalStore

__all__ = ["InMemoryTransactionalStore", "StoredEntity", "TransactionalStore"]
