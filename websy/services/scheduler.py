"""Background scheduler for the periodic key pool reset.

Uses APScheduler to call ``KeyPoolManager.reset_all`` every reset interval.
Controlled by the ENABLE_SCHEDULER setting (default True); the dispatcher
also resets lazily when the interval has elapsed, so disabling it only
delays the reset until the next chat turn.
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from websy.core.key_pool import KeyPoolManager

logger = logging.getLogger(__name__)

RESET_JOB_ID = "key_pool_reset"


class KeyPoolResetScheduler:
    """Owns an ``AsyncIOScheduler`` with a single interval job."""

    def __init__(self, manager: KeyPoolManager, interval_hours: float = 24) -> None:
        self._manager = manager
        self._interval_hours = interval_hours
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def run_reset(self) -> None:
        """Job body: reset the pool, logging instead of raising."""
        try:
            self._manager.reset_all()
            logger.info("Scheduled key pool reset completed")
        except Exception:
            logger.exception("Scheduled key pool reset failed")

    def start(self) -> None:
        """Start the scheduler; must be called with a running event loop."""
        if self.running:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_reset,
            trigger=IntervalTrigger(hours=self._interval_hours),
            id=RESET_JOB_ID,
            name="Provider key pool reset",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Key pool reset scheduler started",
            extra={"interval_hours": self._interval_hours},
        )

    def shutdown(self) -> None:
        """Stop the scheduler if running."""
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Key pool reset scheduler stopped")
