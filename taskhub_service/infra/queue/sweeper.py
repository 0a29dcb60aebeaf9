"""Background lease sweeper.

Consumers expire stale leases whenever they call ``receive``. The sweeper
does the same on a fixed interval so lease expirations are counted, and
exhausted messages are dead-lettered and alerted, even while no consumer is
polling.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .durable import DurableQueue

logger = logging.getLogger(__name__)


class LeaseSweeper:
    """Periodically calls ``DurableQueue.sweep_expired``.

    Example:
        sweeper = LeaseSweeper(queue, interval=5.0)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, queue: DurableQueue, *, interval: float) -> None:
        self.queue = queue
        self.interval = interval
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name="queue-lease-sweeper")
        logger.info("Lease sweeper started", extra={"interval": self.interval})

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        logger.info("Lease sweeper stopped")

    async def sweep_once(self) -> int:
        expired = await self.queue.sweep_expired()
        if expired:
            logger.info("Swept expired leases", extra={"expired": expired})
        return expired

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Error sweeping expired leases")
            await asyncio.sleep(self.interval)


__all__ = ["LeaseSweeper"]
