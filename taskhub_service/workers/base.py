"""Handler contract.

Handlers are stateless objects identified by ``handler_id``. The hub may
deliver the same event more than once, so every handler must be idempotent;
``IdempotentHandler`` provides that by claiming the event id before applying.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskhub_service.core.events.base import Event

    from .dedup import ProcessedIdStore


class HandlerOutcome(StrEnum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    RETRYABLE = "retryable"
    FATAL = "fatal"

    @property
    def is_success(self) -> bool:
        return self in (HandlerOutcome.APPLIED, HandlerOutcome.ALREADY_APPLIED)


@dataclass(frozen=True)
class HandlerResult:
    """What one invocation produced; resolved on the future returned by the pool."""

    handler_id: str
    event_id: str
    outcome: HandlerOutcome
    attempt: int = 1
    duration_seconds: float = 0.0
    error: str | None = None
    error_type: str | None = None


class EventHandler(abc.ABC):
    """Base class for event handlers.

    Subclasses set ``handler_id`` and ``patterns`` (exact types or ``*``
    suffix wildcards) and implement ``handle``. Raising ``RetryableError`` or
    ``FatalError`` is equivalent to returning the matching outcome.
    """

    handler_id: str
    patterns: tuple[str, ...] = ()

    @abc.abstractmethod
    async def handle(self, event: Event) -> HandlerOutcome: ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.handler_id}>"


class IdempotentHandler(EventHandler):
    """Handler that applies each (tenant, handler, event id) at most once.

    The claim is taken with insert-if-absent before ``apply`` runs. A lost
    claim means another delivery already applied (or is applying) the event,
    so ``already_applied`` is returned without side effects. If ``apply``
    fails, or the invocation is cancelled by a timeout, the claim is released
    so the retry can apply.
    """

    def __init__(self, processed: ProcessedIdStore) -> None:
        self.processed = processed

    async def handle(self, event: Event) -> HandlerOutcome:
        if not self.processed.claim(event.tenant_id, self.handler_id, event.event_id):
            return HandlerOutcome.ALREADY_APPLIED
        try:
            await self.apply(event)
        except BaseException:
            self.processed.release(event.tenant_id, self.handler_id, event.event_id)
            raise
        return HandlerOutcome.APPLIED

    @abc.abstractmethod
    async def apply(self, event: Event) -> None:
        """Perform the side effects for ``event``."""


__all__ = [
    "EventHandler",
    "HandlerOutcome",
    "HandlerResult",
    "IdempotentHandler",
]
