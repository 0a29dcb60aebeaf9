"""Handler pool: bounded, timed, independent handler invocations.

``submit`` schedules one invocation as its own asyncio task and returns a
future resolving to a ``HandlerResult``. The future never raises for handler
failures; exceptions are mapped to outcomes:

- ``RetryableError``, ``TimeoutError`` and unknown exceptions -> ``retryable``
- ``FatalError``, registered non-retryable types and names listed in
  ``DLQConfig.non_retryable_exceptions`` -> ``fatal``

A timed-out invocation is cancelled (abandoned) and reported as retryable.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from taskhub_service.core.exceptions import FatalError, RetryableError
from taskhub_service.infra.logging.context import log_context
from taskhub_service.infra.messaging.dlq.exceptions import is_non_retryable_exception
from taskhub_service.infra.metrics.prometheus import handler_duration_seconds, handler_timeouts_total

from .base import EventHandler, HandlerOutcome, HandlerResult

if TYPE_CHECKING:
    from taskhub_service.core.events.base import Event
    from taskhub_service.core.settings.hub import HubSettings
    from taskhub_service.infra.messaging.dlq.config import DLQConfig

logger = logging.getLogger(__name__)


class HandlerPool:
    """Registry of handlers plus the machinery that runs them.

    Args:
        settings: Concurrency bound and per-invocation timeout.
        retry_config: Exception name filters used to classify failures.
    """

    def __init__(self, settings: HubSettings, retry_config: DLQConfig) -> None:
        self.settings = settings
        self.retry_config = retry_config
        self._handlers: dict[str, EventHandler] = {}
        self._semaphore = asyncio.Semaphore(settings.max_concurrency)
        self._tasks: set[asyncio.Task[HandlerResult]] = set()

    def register(self, handler: EventHandler) -> EventHandler:
        """Add a handler.

        Raises:
            ValueError: Another handler already uses this id.
        """
        existing = self._handlers.get(handler.handler_id)
        if existing is not None and existing is not handler:
            msg = f"Handler id '{handler.handler_id}' is already registered"
            raise ValueError(msg)
        self._handlers[handler.handler_id] = handler
        logger.debug("Handler registered", extra={"handler_id": handler.handler_id})
        return handler

    def unregister(self, handler_id: str) -> EventHandler | None:
        return self._handlers.pop(handler_id, None)

    def get(self, handler_id: str) -> EventHandler:
        """Raises KeyError for unknown handler ids."""
        return self._handlers[handler_id]

    def has(self, handler_id: str) -> bool:
        return handler_id in self._handlers

    @property
    def handlers(self) -> list[EventHandler]:
        return list(self._handlers.values())

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        handler_id: str,
        event: Event,
        *,
        attempt: int = 1,
    ) -> asyncio.Future[HandlerResult]:
        """Schedule one invocation and return its result channel.

        Raises:
            KeyError: Unknown handler id.
        """
        handler = self._handlers[handler_id]
        task = asyncio.create_task(
            self._invoke(handler, event, attempt),
            name=f"handler:{handler_id}:{event.event_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _invoke(self, handler: EventHandler, event: Event, attempt: int) -> HandlerResult:
        handler_id = handler.handler_id
        async with self._semaphore:
            with log_context(handler_id=handler_id, attempt=attempt, **event.log_extra()):
                started = time.perf_counter()
                outcome, error = await self._run(handler, event)
                duration = time.perf_counter() - started

        handler_duration_seconds.labels(handler_id=handler_id).observe(duration)
        return HandlerResult(
            handler_id=handler_id,
            event_id=event.event_id,
            outcome=outcome,
            attempt=attempt,
            duration_seconds=duration,
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
        )

    async def _run(
        self,
        handler: EventHandler,
        event: Event,
    ) -> tuple[HandlerOutcome, BaseException | None]:
        try:
            outcome = await asyncio.wait_for(
                handler.handle(event),
                timeout=self.settings.handler_timeout_seconds,
            )
        except TimeoutError as exc:
            handler_timeouts_total.labels(handler_id=handler.handler_id).inc()
            logger.warning(
                "Handler timed out after %.2fs",
                self.settings.handler_timeout_seconds,
            )
            return HandlerOutcome.RETRYABLE, exc
        except FatalError as exc:
            logger.warning("Handler failed permanently: %s", exc)
            return HandlerOutcome.FATAL, exc
        except RetryableError as exc:
            logger.info("Handler asked for a retry: %s", exc)
            return HandlerOutcome.RETRYABLE, exc
        except Exception as exc:
            if is_non_retryable_exception(exc) or not self.retry_config.should_retry_exception(exc):
                logger.exception("Handler raised non-retryable %s", type(exc).__name__)
                return HandlerOutcome.FATAL, exc
            logger.exception("Handler raised %s", type(exc).__name__)
            return HandlerOutcome.RETRYABLE, exc

        return HandlerOutcome(outcome), None

    async def shutdown(self) -> None:
        """Cancel invocations still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["HandlerPool"]
