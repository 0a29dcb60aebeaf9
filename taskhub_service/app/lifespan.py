"""Application lifespan management.

Startup order:
1. Logging (idempotent)
2. Event log tables, when SQL-backed
3. Queue consumers

Shutdown runs in reverse: consumers stop after their current batch, in-flight
deliveries get a bounded drain, then pools, HTTP clients and the engine close.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from taskhub_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

    from .container import ServiceContainer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    container: ServiceContainer = app.state.container
    setup_logging(container.settings.logging)

    logger.info(
        "Starting %s",
        container.settings.app.service_name,
        extra={
            "version": container.settings.app.version,
            "environment": container.settings.app.environment,
        },
    )
    await container.startup(start_consumers=app.state.start_consumers)
    try:
        yield
    finally:
        logger.info("Shutting down %s", container.settings.app.service_name)
        await container.shutdown()


__all__ = ["lifespan"]
