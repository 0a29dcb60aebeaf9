"""Unit tests for HandlerPool invocation and failure classification."""

from __future__ import annotations

import asyncio

import pytest

from taskhub_service.core.events import Event
from taskhub_service.core.exceptions import FatalError, RetryableError
from taskhub_service.core.settings import HubSettings
from taskhub_service.infra.messaging.dlq.config import DLQConfig
from taskhub_service.infra.messaging.dlq.exceptions import (
    register_non_retryable,
    unregister_non_retryable,
)
from taskhub_service.workers.base import EventHandler, HandlerOutcome
from taskhub_service.workers.pool import HandlerPool


class MalformedAttachmentError(Exception):
    pass


class CallableHandler(EventHandler):
    """Delegates to an async function."""

    def __init__(self, handler_id: str, func) -> None:
        self.handler_id = handler_id
        self.func = func

    async def handle(self, event: Event) -> HandlerOutcome:
        return await self.func(event)


def _event() -> Event:
    return Event(event_id="e-1", event_type="TaskCreated", tenant_id="T1", payload={"task_id": "1"})


def _raising(exc: BaseException):
    async def func(event: Event) -> HandlerOutcome:
        raise exc

    return func


@pytest.fixture
def pool(settings) -> HandlerPool:
    return HandlerPool(settings.hub, settings.dlq)


# ============================================================================
# Registration
# ============================================================================


@pytest.mark.unit
class TestRegistration:
    async def test_register_and_lookup(self, pool):
        handler = CallableHandler("h1", _raising(RetryableError("x")))

        pool.register(handler)
        pool.register(handler)

        assert pool.has("h1")
        assert pool.get("h1") is handler
        assert pool.handlers == [handler]

    def test_duplicate_id_rejected(self, pool):
        pool.register(CallableHandler("h1", _raising(RetryableError("x"))))

        with pytest.raises(ValueError, match="already registered"):
            pool.register(CallableHandler("h1", _raising(RetryableError("x"))))

    async def test_submit_unknown_handler(self, pool):
        with pytest.raises(KeyError):
            pool.submit("missing", _event())


# ============================================================================
# Outcomes
# ============================================================================


@pytest.mark.unit
class TestOutcomes:
    """Every invocation resolves to a HandlerResult; failures never raise."""

    async def test_returned_outcome(self, pool):
        async def applied(event: Event) -> HandlerOutcome:
            return HandlerOutcome.ALREADY_APPLIED

        pool.register(CallableHandler("h1", applied))

        result = await pool.submit("h1", _event(), attempt=2)

        assert result.outcome is HandlerOutcome.ALREADY_APPLIED
        assert result.attempt == 2
        assert result.event_id == "e-1"
        assert result.error is None
        assert result.duration_seconds >= 0

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (RetryableError("busy"), HandlerOutcome.RETRYABLE),
            (ConnectionError("reset"), HandlerOutcome.RETRYABLE),
            (FatalError("bad"), HandlerOutcome.FATAL),
            (TypeError("wrong type"), HandlerOutcome.FATAL),
        ],
    )
    async def test_exception_mapping(self, pool, exc, expected):
        pool.register(CallableHandler("h1", _raising(exc)))

        result = await pool.submit("h1", _event())

        assert result.outcome is expected
        assert result.error_type == type(exc).__name__
        assert result.error == str(exc)

    async def test_registered_non_retryable_type(self, pool):
        register_non_retryable(MalformedAttachmentError)
        try:
            pool.register(CallableHandler("h1", _raising(MalformedAttachmentError("no"))))
            result = await pool.submit("h1", _event())
        finally:
            unregister_non_retryable(MalformedAttachmentError)

        assert result.outcome is HandlerOutcome.FATAL

    async def test_retry_whitelist(self, settings):
        pool = HandlerPool(settings.hub, DLQConfig(retryable_exceptions=("ConnectionError",)))
        pool.register(CallableHandler("conn", _raising(ConnectionError("reset"))))
        pool.register(CallableHandler("value", _raising(ValueError("bad"))))

        assert (await pool.submit("conn", _event())).outcome is HandlerOutcome.RETRYABLE
        assert (await pool.submit("value", _event())).outcome is HandlerOutcome.FATAL

    async def test_timeout_is_retryable(self, settings):
        pool = HandlerPool(HubSettings(handler_timeout_seconds=0.05), settings.dlq)
        cancelled = asyncio.Event()

        async def hang(event: Event) -> HandlerOutcome:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return HandlerOutcome.APPLIED

        pool.register(CallableHandler("slow", hang))

        result = await pool.submit("slow", _event())

        assert result.outcome is HandlerOutcome.RETRYABLE
        assert result.error_type == "TimeoutError"
        assert cancelled.is_set()


# ============================================================================
# Concurrency
# ============================================================================


@pytest.mark.unit
class TestConcurrency:
    async def test_max_concurrency_bound(self, settings):
        pool = HandlerPool(HubSettings(max_concurrency=2), settings.dlq)
        running = 0
        peak = 0

        async def work(event: Event) -> HandlerOutcome:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return HandlerOutcome.APPLIED

        pool.register(CallableHandler("h1", work))

        results = await asyncio.gather(*(pool.submit("h1", _event()) for _ in range(6)))

        assert all(r.outcome is HandlerOutcome.APPLIED for r in results)
        assert peak == 2

    async def test_shutdown_cancels_running(self, pool):
        gate = asyncio.Event()

        async def wait(event: Event) -> HandlerOutcome:
            await gate.wait()
            return HandlerOutcome.APPLIED

        pool.register(CallableHandler("h1", wait))
        future = pool.submit("h1", _event())
        await asyncio.sleep(0)

        assert pool.active_count == 1
        await pool.shutdown()

        assert future.cancelled()
