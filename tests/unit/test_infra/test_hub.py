"""Unit tests for the subscription table and the event hub's delivery loop."""

from __future__ import annotations

import asyncio

import pytest

from taskhub_service.core.events import Event
from taskhub_service.core.exceptions import FatalError
from taskhub_service.infra.events import InMemoryEventLog
from taskhub_service.infra.messaging.dlq.store import (
    DeadLetterKind,
    DeadLetterReason,
    DeadLetterStore,
)
from taskhub_service.infra.messaging.hub import (
    Delivery,
    DeliveryState,
    EventHub,
    InvalidTransitionError,
    SubscriptionTable,
    pattern_matches,
    validate_pattern,
)
from taskhub_service.workers.base import EventHandler, HandlerOutcome
from taskhub_service.workers.pool import HandlerPool


class ScriptedHandler(EventHandler):
    """Returns (or raises) the scripted outcomes in order, then keeps the last one."""

    def __init__(self, handler_id: str, *outcomes, patterns: tuple[str, ...] = ("Task*",)) -> None:
        self.handler_id = handler_id
        self.patterns = patterns
        self.outcomes = list(outcomes) or [HandlerOutcome.APPLIED]
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def handle(self, event: Event) -> HandlerOutcome:
        self.calls.append(event.event_id)
        gate = self.gates.get(event.event_id)
        if gate is not None:
            await gate.wait()
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _event(event_id: str = "e-1", tenant_id: str = "T1", event_type: str = "TaskCreated") -> Event:
    return Event(
        event_id=event_id,
        event_type=event_type,
        tenant_id=tenant_id,
        payload={"task_id": "42"},
    )


@pytest.fixture
def dead_letters() -> DeadLetterStore:
    return DeadLetterStore()


@pytest.fixture
def hub(settings, sleep, dead_letters) -> EventHub:
    pool = HandlerPool(settings.hub, settings.dlq)
    return EventHub(
        InMemoryEventLog(),
        pool,
        dead_letters,
        settings.dlq,
        settings.hub,
        sleep=sleep,
    )


# ============================================================================
# Subscriptions
# ============================================================================


@pytest.mark.unit
class TestPatterns:
    @pytest.mark.parametrize(
        ("pattern", "event_type", "expected"),
        [
            ("TaskCreated", "TaskCreated", True),
            ("TaskCreated", "TaskCreatedV2", False),
            ("Task*", "TaskUpdated", True),
            ("Task*", "FileStored", False),
            ("*", "Anything", True),
        ],
    )
    def test_matching(self, pattern, event_type, expected):
        assert pattern_matches(pattern, event_type) is expected

    @pytest.mark.parametrize("pattern", ["", "Ta*sk", "**"])
    def test_invalid_patterns(self, pattern):
        with pytest.raises(ValueError, match="Invalid subscription pattern"):
            validate_pattern(pattern)


@pytest.mark.unit
class TestSubscriptionTable:
    """Tests for the versioned subscription table."""

    def test_version_bumps_only_on_effective_change(self):
        table = SubscriptionTable()

        assert table.subscribe("Task*", "h1") is True
        assert table.subscribe("Task*", "h1") is False
        assert table.version == 1
        assert table.unsubscribe("Task*", "h2") is False
        assert table.version == 1
        assert table.unsubscribe("Task*", "h1") is True
        assert table.version == 2
        assert len(table) == 0

    def test_overlapping_patterns_match_once(self):
        table = SubscriptionTable()
        table.subscribe("Task*", "h1")
        table.subscribe("TaskCreated", "h1")
        table.subscribe("TaskCreated", "h2")

        assert table.match("TaskCreated") == ["h1", "h2"]
        assert table.match("TaskUpdated") == ["h1"]
        assert table.patterns_for("h1") == ["Task*", "TaskCreated"]

    def test_snapshot_is_a_copy(self):
        table = SubscriptionTable()
        table.subscribe("Task*", "h1")

        snapshot = table.snapshot()
        table.subscribe("Task*", "h2")

        assert snapshot == {"Task*": ("h1",)}


# ============================================================================
# Delivery state machine
# ============================================================================


@pytest.mark.unit
class TestDelivery:
    def test_happy_path_history(self):
        delivery = Delivery(event=_event(), handler_id="h1")

        delivery.transition(DeliveryState.IN_FLIGHT)
        delivery.transition(DeliveryState.RETRYING)
        delivery.transition(DeliveryState.IN_FLIGHT)
        delivery.transition(DeliveryState.ACKED)

        assert delivery.is_terminal
        assert delivery.history == ["pending", "in_flight", "retrying", "in_flight", "acked"]

    @pytest.mark.parametrize(
        ("path", "invalid"),
        [
            ([], DeliveryState.ACKED),
            ([DeliveryState.IN_FLIGHT, DeliveryState.ACKED], DeliveryState.IN_FLIGHT),
            ([DeliveryState.IN_FLIGHT, DeliveryState.RETRYING], DeliveryState.ACKED),
        ],
    )
    def test_invalid_transitions(self, path, invalid):
        delivery = Delivery(event=_event(), handler_id="h1")
        for state in path:
            delivery.transition(state)

        with pytest.raises(InvalidTransitionError):
            delivery.transition(invalid)

    def test_ordering_key(self):
        delivery = Delivery(event=_event(tenant_id="T2"), handler_id="h1")

        assert delivery.ordering_key == ("h1", "T2", "TaskCreated")


# ============================================================================
# Hub
# ============================================================================


@pytest.mark.unit
class TestEventHubSubscriptions:
    def test_subscribe_requires_registered_handler(self, hub):
        with pytest.raises(KeyError):
            hub.subscribe("Task*", "missing")

    def test_register_handler_subscribes_its_patterns(self, hub):
        hub.register_handler(ScriptedHandler("h1", patterns=("TaskCreated", "File*")))

        assert hub.subscriptions.match("FileStored") == ["h1"]
        assert hub.subscriptions.version == 2

    async def test_no_subscribers_still_records(self, hub):
        tasks = await hub.publish(_event())

        assert tasks == []
        assert await hub.event_log.count() == 1


@pytest.mark.unit
class TestEventHubDelivery:
    """Tests for fan-out, retries and dead-lettering."""

    async def test_fan_out_to_every_matching_handler(self, hub):
        first = ScriptedHandler("h1")
        second = ScriptedHandler("h2", patterns=("TaskCreated",))
        other = ScriptedHandler("h3", patterns=("File*",))
        for handler in (first, second, other):
            hub.register_handler(handler)

        deliveries = await asyncio.gather(*await hub.publish(_event()))

        assert sorted(d.handler_id for d in deliveries) == ["h1", "h2"]
        assert all(d.state is DeliveryState.ACKED for d in deliveries)
        assert other.calls == []

    async def test_slow_handler_does_not_block_others(self, hub):
        slow = ScriptedHandler("slow")
        fast = ScriptedHandler("fast")
        slow.gates["e-1"] = asyncio.Event()
        hub.register_handler(slow)
        hub.register_handler(fast)

        tasks = await hub.publish(_event())
        by_handler = {t.get_name().split(":")[1]: t for t in tasks}
        fast_delivery = await by_handler["fast"]

        assert fast_delivery.state is DeliveryState.ACKED
        assert not by_handler["slow"].done()

        slow.gates["e-1"].set()
        assert (await by_handler["slow"]).state is DeliveryState.ACKED

    async def test_retry_then_ack(self, hub, sleep, dead_letters):
        handler = ScriptedHandler("h1", HandlerOutcome.RETRYABLE, HandlerOutcome.APPLIED)
        hub.register_handler(handler)

        [delivery] = await asyncio.gather(*await hub.publish(_event()))

        assert delivery.state is DeliveryState.ACKED
        assert delivery.attempts == 2
        assert delivery.history == ["pending", "in_flight", "retrying", "in_flight", "acked"]
        assert sleep.delays == [0.01]
        assert len(dead_letters) == 0

    async def test_exhausted_retries_dead_letter_once(self, hub, sleep, dead_letters):
        handler = ScriptedHandler("h1", HandlerOutcome.RETRYABLE)
        hub.register_handler(handler)

        [delivery] = await asyncio.gather(*await hub.publish(_event()))

        assert delivery.state is DeliveryState.DEAD_LETTERED
        assert delivery.attempts == 3
        assert len(handler.calls) == 3
        assert sleep.delays == [0.01, 0.02]
        [entry] = dead_letters.list_entries()
        assert entry.kind is DeadLetterKind.EVENT
        assert entry.reason is DeadLetterReason.MAX_ATTEMPTS_EXCEEDED
        assert entry.source == "h1"
        assert entry.attempts == 3
        assert entry.body["event_id"] == "e-1"

    async def test_fatal_outcome_dead_letters_without_retry(self, hub, sleep, dead_letters):
        hub.register_handler(ScriptedHandler("h1", HandlerOutcome.FATAL))

        [delivery] = await asyncio.gather(*await hub.publish(_event()))

        assert delivery.attempts == 1
        assert sleep.delays == []
        assert dead_letters.list_entries()[0].reason is DeadLetterReason.FATAL

    async def test_raised_fatal_error_is_recorded(self, hub, dead_letters):
        hub.register_handler(ScriptedHandler("h1", FatalError("bad attachment")))

        await asyncio.gather(*await hub.publish(_event()))

        [entry] = dead_letters.list_entries()
        assert entry.last_error == "FatalError: bad attachment"

    async def test_republished_event_recorded_once(self, hub):
        handler = ScriptedHandler("h1")
        hub.register_handler(handler)

        await asyncio.gather(*await hub.publish(_event()))
        await asyncio.gather(*await hub.publish(_event()))

        assert await hub.event_log.count() == 1
        assert handler.calls == ["e-1", "e-1"]


@pytest.mark.unit
class TestEventHubOrdering:
    async def test_same_key_runs_in_dispatch_order(self, hub):
        handler = ScriptedHandler("h1")
        handler.gates["e-1"] = asyncio.Event()
        hub.register_handler(handler)

        first = await hub.publish(_event("e-1"))
        second = await hub.publish(_event("e-2"))
        for _ in range(10):
            await asyncio.sleep(0)

        assert handler.calls == ["e-1"]

        handler.gates["e-1"].set()
        await asyncio.gather(*first, *second)
        assert handler.calls == ["e-1", "e-2"]

    async def test_other_tenants_are_not_held_back(self, hub):
        handler = ScriptedHandler("h1")
        handler.gates["e-1"] = asyncio.Event()
        hub.register_handler(handler)

        blocked = await hub.publish(_event("e-1", tenant_id="T1"))
        [other] = await hub.publish(_event("e-2", tenant_id="T2"))

        assert (await other).state is DeliveryState.ACKED
        assert not blocked[0].done()

        handler.gates["e-1"].set()
        await asyncio.gather(*blocked)


@pytest.mark.unit
class TestEventHubLifecycle:
    async def test_redeliver(self, hub):
        handler = ScriptedHandler("h1")
        hub.register_handler(handler)

        delivery = await hub.redeliver(_event(), "h1")

        assert delivery.state is DeliveryState.ACKED
        assert handler.calls == ["e-1"]
        assert hub.completed[-1] is delivery

    def test_redeliver_unknown_handler(self, hub):
        with pytest.raises(KeyError):
            hub.redeliver(_event(), "missing")

    async def test_drain_times_out_then_completes(self, hub):
        handler = ScriptedHandler("h1")
        handler.gates["e-1"] = asyncio.Event()
        hub.register_handler(handler)
        await hub.publish(_event())

        assert await hub.drain(timeout=0.05) is False
        assert hub.in_flight_count == 1

        handler.gates["e-1"].set()
        assert await hub.drain(timeout=1) is True
        assert hub.in_flight_count == 0

    async def test_close_cancels_in_flight(self, hub):
        handler = ScriptedHandler("h1")
        handler.gates["e-1"] = asyncio.Event()
        hub.register_handler(handler)
        [task] = await hub.publish(_event())

        await hub.close()

        assert task.cancelled()
        await hub.pool.shutdown()
