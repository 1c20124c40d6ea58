import asyncio
import contextlib

import structlog

from uidkeeper.core.core import Service
from uidkeeper.errors import UpstreamError

logger = structlog.get_logger(__name__)


class CleanupService(Service):
    """Periodically removes expired uids from the ledger.

    Disabled when ``cleanup_interval_seconds`` is 0. A failed run is logged and
    simply retried on the next tick.
    """

    _task: asyncio.Task[None] | None = None

    async def on_start(self) -> None:
        interval = self.core.config.cleanup_interval_seconds
        if interval <= 0:
            logger.debug("cleanup_scheduler_disabled")
            return
        self._task = asyncio.create_task(self._run_forever(interval))
        logger.info("cleanup_scheduler_started", interval_seconds=interval)

    async def on_stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("cleanup_scheduler_stopped")

    async def run_once(self) -> int | None:
        """Run one cleanup pass, returning the deleted count or None on failure."""
        try:
            deleted_count = await self.core.services.uid.cleanup_expired_uids()
        except UpstreamError as e:
            logger.warning("cleanup_failed", error=str(e))
            return None
        logger.info("cleanup_completed", deleted_count=deleted_count)
        return deleted_count

    async def _run_forever(self, interval: int) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(interval)
