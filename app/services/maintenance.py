"""
Maintenance scheduler for periodic audit log retention.

Sleeps until the next cron occurrence, then runs the retention sweep batch by
batch until the backlog is cleared.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from croniter import croniter

logger = logging.getLogger(__name__)


def next_run_after(cron_expr: str, from_time: Optional[datetime] = None) -> datetime:
    """Next occurrence of a cron expression after from_time (defaults to now)."""
    now = from_time or datetime.utcnow()
    return croniter(cron_expr, now).get_next(datetime)


def validate_cron(cron_expr: str) -> str | None:
    """Validate a cron expression. Returns error message or None."""
    try:
        croniter(cron_expr)
    except (ValueError, KeyError) as e:
        return f"Invalid cron expression: {e}"
    return None


async def run_retention(session_factory, max_batches: int = 50) -> int:
    """Run retention sweeps until a partial batch or max_batches is reached.

    Returns the total number of entries deleted.
    """
    from app.services.invocation_log import CLEANUP_BATCH_SIZE, cleanup_old_invocations

    total = 0
    for _ in range(max_batches):
        async with session_factory() as session:
            deleted = await cleanup_old_invocations(session)
        total += deleted
        if deleted < CLEANUP_BATCH_SIZE:
            break
    else:
        logger.warning(f"Retention stopped after {max_batches} full batches; backlog remains")
    return total


class MaintenanceScheduler:
    """Singleton that runs the retention sweep on a cron schedule."""

    _instance = None
    _task: Optional[asyncio.Task] = None
    _running: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def start(self):
        """Start the scheduler loop."""
        if self._running:
            return
        from app.config import settings

        error = validate_cron(settings.retention_cron)
        if error:
            logger.error(f"MaintenanceScheduler not started: {error}")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"MaintenanceScheduler started (retention_cron='{settings.retention_cron}')")

    async def stop(self):
        """Stop the scheduler."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("MaintenanceScheduler stopped")

    async def _loop(self):
        """Main loop: sleep until the next occurrence, then sweep."""
        from app.config import settings

        while self._running:
            next_run = next_run_after(settings.retention_cron)
            delay = max((next_run - datetime.utcnow()).total_seconds(), 0)
            await asyncio.sleep(delay)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Retention sweep error: {e}", exc_info=True)

    async def run_once(self) -> int:
        """Run one retention pass now."""
        from app.config import settings
        from app.db.database import AsyncSessionLocal

        deleted = await run_retention(AsyncSessionLocal, settings.retention_max_batches)
        logger.info(f"Retention sweep deleted {deleted} invocation log entries")
        return deleted
