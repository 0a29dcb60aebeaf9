"""Service container: builds and owns the pipeline components.

Everything the HTTP layer and the background consumers share is created
here once, from one ``Settings`` value, and attached to ``app.state``:

    tenants -> publisher -> hub (event log, handler pool, dead letters)
                             -> handlers -> durable queue -> consumers -> store

The event log is SQL-backed when ``DB_URL`` is set and in-memory otherwise.
Collaborators with no production implementation in this service (blob
storage, transactional store) default to their in-memory versions and can
be replaced by passing them in.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from taskhub_service.core.events.publisher import EventPublisher
from taskhub_service.core.events.registry import payload_registry
from taskhub_service.core.settings import Settings, get_settings
from taskhub_service.core.tenants import TenantRegistry
from taskhub_service.features.admin.service import AdminService
from taskhub_service.features.tasks.consumer import ConsumerGroup, TaskStateApplier
from taskhub_service.features.tasks.service import TaskService
from taskhub_service.infra.auth import StaticTokenAuthorizer
from taskhub_service.infra.database.session import (
    create_engine,
    create_session_factory,
    init_database,
)
from taskhub_service.infra.events.log import InMemoryEventLog, SqlEventLog
from taskhub_service.infra.messaging.dlq import DeadLetterAlerter, DeadLetterStore
from taskhub_service.infra.messaging.hub import EventHub, Sleep
from taskhub_service.infra.queue import DurableQueue, LeaseSweeper, utc_now
from taskhub_service.infra.storage.memory import InMemoryBlobStorage
from taskhub_service.infra.store.memory import InMemoryTransactionalStore
from taskhub_service.workers import (
    AttachmentIndexerHandler,
    HandlerPool,
    ProcessedIdStore,
    TaskProjectionHandler,
)

if TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncEngine

    from taskhub_service.infra.events.log import EventLog
    from taskhub_service.infra.queue import Clock
    from taskhub_service.infra.storage.protocol import BlobStorage
    from taskhub_service.infra.store.memory import TransactionalStore

logger = logging.getLogger(__name__)

# Seconds allowed for in-flight deliveries to finish on shutdown
DRAIN_TIMEOUT = 10.0


@dataclass
class ServiceContainer:
    settings: Settings
    tenants: TenantRegistry
    event_log: EventLog
    alerter: DeadLetterAlerter
    dead_letters: DeadLetterStore
    processed: ProcessedIdStore
    pool: HandlerPool
    hub: EventHub
    queue: DurableQueue
    storage: BlobStorage
    store: TransactionalStore
    publisher: EventPublisher
    tasks: TaskService
    applier: TaskStateApplier
    consumers: ConsumerGroup
    sweeper: LeaseSweeper
    authorizer: StaticTokenAuthorizer
    admin: AdminService
    engine: AsyncEngine | None = None
    started: bool = False

    async def startup(self, *, start_consumers: bool = True) -> None:
        """Prepare storage and start background consumers."""
        if self.started:
            return
        if self.engine is not None and self.settings.db.create_tables:
            await init_database(self.engine)
        if start_consumers:
            await self.consumers.start()
        await self.sweeper.start()
        self.started = True
        logger.info(
            "Service container started",
            extra={
                "handlers": [h.handler_id for h in self.pool.handlers],
                "consumers": len(self.consumers.consumers) if start_consumers else 0,
                "event_log": type(self.event_log).__name__,
            },
        )

    async def shutdown(self) -> None:
        """Stop consumers, let deliveries finish, release resources."""
        await self.consumers.stop()
        await self.sweeper.stop()
        if not await self.hub.drain(timeout=DRAIN_TIMEOUT):
            logger.warning(
                "Deliveries still in flight at shutdown, cancelling",
                extra={"in_flight": self.hub.in_flight_count},
            )
        await self.hub.close()
        await self.pool.shutdown()
        await self.alerter.close()
        if self.engine is not None:
            await self.engine.dispose()
        self.started = False
        logger.info("Service container stopped")

    async def settle(self, *, rounds: int = 50) -> None:
        """Run the pipeline until no delivery is in flight and the queue is idle.

        Intended for tests and one-shot tools that do not run the consumer
        loops.
        """
        for _ in range(rounds):
            await self.hub.drain()
            applied = await self.consumers.drain()
            if applied == 0 and self.hub.in_flight_count == 0:
                return
            await asyncio.sleep(0)


def build_container(
    settings: Settings | None = None,
    *,
    event_log: EventLog | None = None,
    storage: BlobStorage | None = None,
    store: TransactionalStore | None = None,
    clock: Clock = utc_now,
    sleep: Sleep = asyncio.sleep,
    http_client: httpx.AsyncClient | None = None,
) -> ServiceContainer:
    """Wire all components together.

    Args:
        settings: Defaults to the cached unified settings.
        event_log: Overrides the log selected by ``settings.db``.
        storage: Blob storage collaborator.
        store: Transactional store collaborator.
        clock: Queue lease clock.
        sleep: Hub retry backoff sleep.
        http_client: Client used for webhook alerts.
    """
    settings = settings or get_settings()

    engine = None
    if event_log is None:
        if settings.db.is_configured:
            engine = create_engine(settings.db)
            event_log = SqlEventLog(create_session_factory(engine))
        else:
            event_log = InMemoryEventLog()

    storage = storage or InMemoryBlobStorage()
    store = store or InMemoryTransactionalStore()

    tenants = TenantRegistry()
    alerter = DeadLetterAlerter(settings.alerts, http_client=http_client)
    dead_letters = DeadLetterStore(alerter)
    processed = ProcessedIdStore(settings.hub.dedup_window_seconds)
    pool = HandlerPool(settings.hub, settings.dlq)
    hub = EventHub(event_log, pool, dead_letters, settings.dlq, settings.hub, sleep=sleep)
    queue = DurableQueue(settings.queue, dead_letters, clock=clock)

    hub.register_handler(TaskProjectionHandler(processed, queue))
    hub.register_handler(AttachmentIndexerHandler(processed, queue, tenants, storage))

    publisher = EventPublisher(tenants, hub, registry=payload_registry)
    applier = TaskStateApplier(tenants, store)
    authorizer = StaticTokenAuthorizer(settings.app.api_tokens, tenants)

    return ServiceContainer(
        settings=settings,
        tenants=tenants,
        event_log=event_log,
        alerter=alerter,
        dead_letters=dead_letters,
        processed=processed,
        pool=pool,
        hub=hub,
        queue=queue,
        storage=storage,
        store=store,
        publisher=publisher,
        tasks=TaskService(publisher, storage, store),
        applier=applier,
        consumers=ConsumerGroup(queue, applier, settings.queue),
        sweeper=LeaseSweeper(queue, interval=settings.queue.sweep_interval_seconds),
        authorizer=authorizer,
        admin=AdminService(
            settings.app,
            tenants,
            dead_letters,
            hub,
            queue,
            event_log,
            authorizer,
        ),
        engine=engine,
    )


__all__ = ["DRAIN_TIMEOUT", "ServiceContainer", "build_container"]
