"""Event distribution hub.

The hub records each published event in the event log, then fans it out: one
independent delivery task per matching handler, all running in parallel on
the handler pool. A slow or failing handler never holds up the others.

Each (event, handler) delivery runs an explicit state machine::

    pending -> in_flight -> acked
                         -> retrying -> in_flight
                         -> dead_lettered

Retryable outcomes back off according to ``DLQConfig`` until ``max_attempts``
attempts were made; fatal outcomes dead-letter at once. Dead-lettering raises
an alert and never blocks other deliveries. Nothing is replayed from the
dead-letter store automatically.

Deliveries sharing (handler, tenant, event type) run one after another in
dispatch order when ``ordered_delivery`` is enabled.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from taskhub_service.infra.logging.context import log_context
from taskhub_service.infra.metrics.prometheus import (
    events_published_total,
    hub_deliveries_in_flight,
    hub_dispatches_total,
    hub_retries_total,
    hub_retry_delay_seconds,
)
from taskhub_service.workers.base import HandlerOutcome

from .dlq.calculator import delay_seconds
from .dlq.store import DeadLetterKind, DeadLetterReason

if TYPE_CHECKING:
    from taskhub_service.core.events.base import Event
    from taskhub_service.core.settings.hub import HubSettings
    from taskhub_service.infra.events.log import EventLog
    from taskhub_service.workers.base import EventHandler
    from taskhub_service.workers.pool import HandlerPool

    from .dlq.config import DLQConfig
    from .dlq.store import DeadLetterStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


def validate_pattern(pattern: str) -> str:
    """Patterns are exact types or a prefix followed by a single trailing ``*``.

    Raises:
        ValueError: Empty pattern or ``*`` anywhere but the end.
    """
    if not pattern or "*" in pattern[:-1]:
        msg = f"Invalid subscription pattern: {pattern!r}"
        raise ValueError(msg)
    return pattern


def pattern_matches(pattern: str, event_type: str) -> bool:
    if pattern.endswith("*"):
        return event_type.startswith(pattern[:-1])
    return pattern == event_type


class SubscriptionTable:
    """Versioned mapping of patterns to handler ids.

    Every effective mutation bumps ``version``. A handler subscribed through
    several overlapping patterns still matches an event once.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[str]] = {}
        self._lock = threading.Lock()
        self.version = 0

    def subscribe(self, pattern: str, handler_id: str) -> bool:
        """Returns False when the pair already existed."""
        validate_pattern(pattern)
        with self._lock:
            handlers = self._subscriptions.setdefault(pattern, [])
            if handler_id in handlers:
                return False
            handlers.append(handler_id)
            self.version += 1
            return True

    def unsubscribe(self, pattern: str, handler_id: str) -> bool:
        """Returns False when the pair did not exist."""
        with self._lock:
            handlers = self._subscriptions.get(pattern)
            if not handlers or handler_id not in handlers:
                return False
            handlers.remove(handler_id)
            if not handlers:
                del self._subscriptions[pattern]
            self.version += 1
            return True

    def match(self, event_type: str) -> list[str]:
        """Handler ids subscribed to ``event_type``, deduplicated, in subscription order."""
        with self._lock:
            matched: dict[str, None] = {}
            for pattern, handlers in self._subscriptions.items():
                if pattern_matches(pattern, event_type):
                    matched.update(dict.fromkeys(handlers))
            return list(matched)

    def patterns_for(self, handler_id: str) -> list[str]:
        with self._lock:
            return [p for p, handlers in self._subscriptions.items() if handler_id in handlers]

    def snapshot(self) -> dict[str, tuple[str, ...]]:
        with self._lock:
            return {p: tuple(h) for p, h in self._subscriptions.items()}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(h) for h in self._subscriptions.values())


# ---------------------------------------------------------------------------
# Delivery state machine
# ---------------------------------------------------------------------------


class DeliveryState(StrEnum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    ACKED = "acked"
    DEAD_LETTERED = "dead_lettered"


_TRANSITIONS: dict[DeliveryState, frozenset[DeliveryState]] = {
    DeliveryState.PENDING: frozenset({DeliveryState.IN_FLIGHT, DeliveryState.DEAD_LETTERED}),
    DeliveryState.IN_FLIGHT: frozenset(
        {DeliveryState.ACKED, DeliveryState.RETRYING, DeliveryState.DEAD_LETTERED}
    ),
    # dead_lettered from retrying only when the backoff itself fails
    DeliveryState.RETRYING: frozenset({DeliveryState.IN_FLIGHT, DeliveryState.DEAD_LETTERED}),
    DeliveryState.ACKED: frozenset(),
    DeliveryState.DEAD_LETTERED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    pass


@dataclass
class Delivery:
    """One event on its way to one handler."""

    event: Event
    handler_id: str
    state: DeliveryState = DeliveryState.PENDING
    attempts: int = 0
    last_outcome: HandlerOutcome | None = None
    last_error: str | None = None
    history: list[DeliveryState] = field(default_factory=lambda: [DeliveryState.PENDING])
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def transition(self, new_state: DeliveryState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            msg = f"Delivery cannot move from {self.state} to {new_state}"
            raise InvalidTransitionError(msg)
        self.state = new_state
        self.history.append(new_state)

    @property
    def is_terminal(self) -> bool:
        return self.state in (DeliveryState.ACKED, DeliveryState.DEAD_LETTERED)

    @property
    def ordering_key(self) -> tuple[str, str, str]:
        return (self.handler_id, self.event.tenant_id, self.event.event_type)


# ---------------------------------------------------------------------------
# Hub
# ---------------------------------------------------------------------------


class EventHub:
    """Pub/sub hub owning the subscription table and the event log.

    Args:
        event_log: Durable record of published events.
        pool: Runs handler invocations.
        dead_letters: Where exhausted deliveries go.
        retry_config: Attempt limit and backoff policy.
        settings: Ordering switch.
        sleep: Awaited between attempts; tests can replace it.
    """

    def __init__(
        self,
        event_log: EventLog,
        pool: HandlerPool,
        dead_letters: DeadLetterStore,
        retry_config: DLQConfig,
        settings: HubSettings,
        *,
        sleep: Sleep = asyncio.sleep,
        history_size: int = 1000,
    ) -> None:
        self.event_log = event_log
        self.pool = pool
        self.dead_letters = dead_letters
        self.retry_config = retry_config
        self.settings = settings
        self.subscriptions = SubscriptionTable()
        self._sleep = sleep
        self._in_flight: set[asyncio.Task[Delivery]] = set()
        self._tails: dict[tuple[str, str, str], asyncio.Task[Delivery]] = {}
        self.completed: deque[Delivery] = deque(maxlen=history_size)

    # -- subscriptions -----------------------------------------------------

    def subscribe(self, pattern: str, handler_id: str) -> bool:
        """Subscribe a registered handler to ``pattern``.

        Raises:
            KeyError: The handler is not registered with the pool.
            ValueError: Malformed pattern.
        """
        if not self.pool.has(handler_id):
            raise KeyError(handler_id)
        added = self.subscriptions.subscribe(pattern, handler_id)
        if added:
            logger.info(
                "Subscribed %s to %s",
                handler_id,
                pattern,
                extra={"subscription_version": self.subscriptions.version},
            )
        return added

    def unsubscribe(self, pattern: str, handler_id: str) -> bool:
        removed = self.subscriptions.unsubscribe(pattern, handler_id)
        if removed:
            logger.info(
                "Unsubscribed %s from %s",
                handler_id,
                pattern,
                extra={"subscription_version": self.subscriptions.version},
            )
        return removed

    def register_handler(self, handler: EventHandler) -> None:
        """Register ``handler`` with the pool and subscribe it to its patterns."""
        self.pool.register(handler)
        for pattern in handler.patterns:
            self.subscribe(pattern, handler.handler_id)

    # -- publishing --------------------------------------------------------

    async def publish(self, event: Event) -> list[asyncio.Task[Delivery]]:
        """Durably record ``event`` and start its fan-out.

        Returns once the event log holds the event. Re-publishing a known id
        keeps the original record and dispatches again; idempotent handlers
        turn the repeat into ``already_applied``.
        """
        appended = await self.event_log.append(event)
        if appended:
            events_published_total.labels(event_type=event.event_type).inc()
            logger.info("Event recorded", extra=event.log_extra())
        else:
            logger.info("Event already recorded, dispatching again", extra=event.log_extra())
        return self.dispatch(event)

    def dispatch(self, event: Event) -> list[asyncio.Task[Delivery]]:
        """Start one independent delivery per matching handler."""
        handler_ids = self.subscriptions.match(event.event_type)
        if not handler_ids:
            logger.debug("No subscribers", extra=event.log_extra())
        return [self._start(Delivery(event=event, handler_id=h)) for h in handler_ids]

    def redeliver(self, event: Event, handler_id: str) -> asyncio.Task[Delivery]:
        """Start a single fresh delivery (operator replay).

        Raises:
            KeyError: The handler is not registered.
        """
        if not self.pool.has(handler_id):
            raise KeyError(handler_id)
        logger.info("Redelivering event", extra={**event.log_extra(), "handler_id": handler_id})
        return self._start(Delivery(event=event, handler_id=handler_id))

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait until no delivery is in flight. Returns False on timeout."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._in_flight:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(set(self._in_flight), timeout=remaining)
        return True

    async def close(self) -> None:
        """Cancel deliveries still in flight."""
        tasks = list(self._in_flight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    # -- delivery ----------------------------------------------------------

    def _start(self, delivery: Delivery) -> asyncio.Task[Delivery]:
        previous = self._tails.get(delivery.ordering_key) if self.settings.ordered_delivery else None
        task = asyncio.create_task(
            self._run(delivery, previous),
            name=f"delivery:{delivery.handler_id}:{delivery.event.event_id}",
        )
        if self.settings.ordered_delivery:
            self._tails[delivery.ordering_key] = task
        self._in_flight.add(task)
        hub_deliveries_in_flight.inc()
        task.add_done_callback(lambda t, key=delivery.ordering_key: self._finished(t, key))
        return task

    def _finished(self, task: asyncio.Task[Delivery], key: tuple[str, str, str]) -> None:
        self._in_flight.discard(task)
        hub_deliveries_in_flight.dec()
        if self._tails.get(key) is task:
            del self._tails[key]
        if not task.cancelled() and task.exception() is None:
            self.completed.append(task.result())

    async def _run(
        self,
        delivery: Delivery,
        previous: asyncio.Task[Delivery] | None,
    ) -> Delivery:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        event = delivery.event
        with log_context(handler_id=delivery.handler_id, **event.log_extra()):
            try:
                await self._deliver(delivery)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("Delivery crashed")
                if not delivery.is_terminal:
                    delivery.last_error = f"{type(exc).__name__}: {exc}"
                    await self._dead_letter(delivery, DeadLetterReason.FATAL)
        return delivery

    async def _deliver(self, delivery: Delivery) -> None:
        max_attempts = self.retry_config.max_attempts

        while True:
            delivery.transition(DeliveryState.IN_FLIGHT)
            delivery.attempts += 1

            try:
                result = await self.pool.submit(
                    delivery.handler_id,
                    delivery.event,
                    attempt=delivery.attempts,
                )
            except KeyError:
                delivery.last_error = f"Handler {delivery.handler_id} is not registered"
                await self._dead_letter(delivery, DeadLetterReason.FATAL)
                return

            delivery.last_outcome = result.outcome
            hub_dispatches_total.labels(
                handler_id=delivery.handler_id,
                outcome=result.outcome.value,
            ).inc()

            if result.outcome.is_success:
                delivery.transition(DeliveryState.ACKED)
                logger.info(
                    "Delivery acked (%s) after %d attempt(s)",
                    result.outcome.value,
                    delivery.attempts,
                )
                return

            delivery.last_error = (
                f"{result.error_type}: {result.error}" if result.error_type else result.outcome.value
            )

            if result.outcome is HandlerOutcome.FATAL:
                await self._dead_letter(delivery, DeadLetterReason.FATAL)
                return

            if delivery.attempts >= max_attempts:
                await self._dead_letter(delivery, DeadLetterReason.MAX_ATTEMPTS_EXCEEDED)
                return

            delivery.transition(DeliveryState.RETRYING)
            delay = delay_seconds(self.retry_config, delivery.attempts - 1)
            hub_retries_total.labels(handler_id=delivery.handler_id).inc()
            hub_retry_delay_seconds.labels(handler_id=delivery.handler_id).observe(delay)
            logger.info(
                "Retrying delivery in %.3fs (attempt %d of %d)",
                delay,
                delivery.attempts + 1,
                max_attempts,
                extra={"last_error": delivery.last_error},
            )
            await self._sleep(delay)

    async def _dead_letter(self, delivery: Delivery, reason: DeadLetterReason) -> None:
        delivery.transition(DeliveryState.DEAD_LETTERED)
        await self.dead_letters.record(
            kind=DeadLetterKind.EVENT,
            tenant_id=delivery.event.tenant_id,
            source=delivery.handler_id,
            reason=reason,
            attempts=delivery.attempts,
            last_error=delivery.last_error,
            body=delivery.event.model_dump(mode="json"),
        )


__all__ = [
    "Delivery",
    "DeliveryState",
    "EventHub",
    "InvalidTransitionError",
    "SubscriptionTable",
    "pattern_matches",
    "validate_pattern",
]
