"""Async engine and session factory for the event log database."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .base import Base

if TYPE_CHECKING:
    from taskhub_service.core.settings.database import DatabaseSettings

logger = logging.getLogger(__name__)


def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create the async engine described by ``settings``.

    Raises:
        ValueError: If no URL is configured.
    """
    if not settings.url:
        msg = "DB_URL is not configured"
        raise ValueError(msg)
    return create_async_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=settings.pool_pre_ping,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_database(engine: AsyncEngine) -> None:
    """Create missing tables. Idempotent (``checkfirst``)."""
    # Models must be imported so their tables are on Base.metadata
    from taskhub_service.infra.events import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    logger.info("Database tables ensured", extra={"tables": sorted(Base.metadata.tables)})


__all__ = ["create_engine", "create_session_factory", "init_database"]
