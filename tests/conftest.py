"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: fast, deterministic settings for every component
    - Pipeline Fixtures: service container, tenants and a controllable clock
    - Application Fixtures: FastAPI app and HTTP client

The container is built with a no-op backoff sleep so retry paths run
instantly, and the app is created without starting the consumer loops; tests
drive the queue explicitly through ``container.settle()``.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

# Keep developer .env files and a configured database out of the test run
os.environ.setdefault("DB_URL", "")
os.environ.setdefault("ALERT_WEBHOOK_URL", "")

from taskhub_service.core.settings import (  # noqa: E402
    AlertSettings,
    AppSettings,
    DatabaseSettings,
    HubSettings,
    LoggingSettings,
    QueueSettings,
    Settings,
)
from taskhub_service.core.tenants import TenantNamespaces  # noqa: E402
from taskhub_service.infra.messaging.dlq.config import DLQConfig, RetryPolicy  # noqa: E402

ADMIN_TOKEN = "test-admin-token"
T1_TOKEN = "t1-bearer-token"
T2_TOKEN = "t2-bearer-token"


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Unified settings tuned for tests.

    Three attempts per delivery, no jitter, one consumer and no alert rate
    limiting so every dead letter is observable.
    """
    return Settings(
        app=AppSettings(environment="test", admin_token=SecretStr(ADMIN_TOKEN)),
        logging=LoggingSettings(json_logs=False, console_enabled=False),
        hub=HubSettings(handler_timeout_seconds=2.0, max_concurrency=16),
        dlq=DLQConfig(
            max_attempts=3,
            retry_policy=RetryPolicy.EXPONENTIAL,
            initial_delay_ms=10,
            max_delay_ms=100,
            jitter=False,
        ),
        queue=QueueSettings(
            lease_seconds=30,
            max_delivery_attempts=3,
            consumer_count=1,
            poll_interval_seconds=0.01,
        ),
        db=DatabaseSettings(url=None),
        alerts=AlertSettings(rate_limit_seconds=0),
    )


# ============================================================================
# Pipeline Fixtures
# ============================================================================


class FakeClock:
    """Controllable UTC clock for lease expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingSleep:
    """Backoff sleep that records the requested delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
async def container(settings, sleep, clock) -> AsyncGenerator:
    """Fully wired pipeline with in-memory collaborators.

    Example:
        async def test_pipeline(container, tenant):
            await container.publisher.publish("T1", "TaskCreated", {"taskId": 42})
            await container.settle()
    """
    from taskhub_service.app.container import build_container

    container = build_container(settings, sleep=sleep, clock=clock)
    yield container
    await container.shutdown()


@pytest.fixture
def tenant(container):
    """Tenant T1 sharing namespace ns-1 for data and storage, with a bearer token."""
    context = container.tenants.register("T1", TenantNamespaces.shared("ns-1"))
    container.authorizer.add_token(T1_TOKEN, "T1")
    return context


@pytest.fixture
def other_tenant(container):
    context = container.tenants.register("T2", TenantNamespaces.shared("ns-2"))
    container.authorizer.add_token(T2_TOKEN, "T2")
    return context


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(container):
    """FastAPI application sharing the test container.

    Consumer loops are not started; call ``container.settle()`` to apply
    queued work.
    """
    from taskhub_service.app.main import create_app

    return create_app(container=container, start_consumers=False)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client bound to the app in-process."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {T1_TOKEN}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": ADMIN_TOKEN}
