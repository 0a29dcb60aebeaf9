"""Event handler pool and the built-in handlers.

Handlers react to events fanned out by the hub. They are idempotent (the hub
delivers at least once) and push durable follow-up work onto the durable
queue instead of writing tenant state themselves.
"""

from __future__ import annotations

from .base import EventHandler, HandlerOutcome, HandlerResult, IdempotentHandler
from .dedup import ProcessedIdStore
from .handlers import AttachmentIndexerHandler, TaskProjectionHandler
from .pool import HandlerPool

__all__ = [
    "AttachmentIndexerHandler",
    "EventHandler",
    "HandlerOutcome",
    "HandlerPool",
    "HandlerResult",
    "IdempotentHandler",
    "ProcessedIdStore",
    "TaskProjectionHandler",
]
