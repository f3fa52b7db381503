"""
SCHEDULER BOOTSTRAP

Wraps the APScheduler instance that drives quote polling.
Scheduler is orchestration-only and contains no business logic.
"""

import logging
from datetime import datetime
from typing import Optional

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.realtime.runtime import ValuationEngine

_logger = logging.getLogger(__name__)

POLL_JOB_ID = "quote_poll_job"


class QuotePollScheduler:
    """
    Runs ValuationEngine.tick once at start and then every `interval_seconds`.

    One instance of the job at a time; missed runs are coalesced into one.
    """

    def __init__(self, engine: ValuationEngine, interval_seconds: int = 60, timezone: str = "UTC"):
        self._engine = engine
        self._interval_seconds = interval_seconds
        self._timezone = pytz.timezone(timezone)
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def poll_job(self) -> None:
        try:
            result = await self._engine.tick()
        except Exception:
            _logger.exception("Quote poll job failed")
            return
        if result.skipped:
            return
        if result.advisory:
            _logger.warning("⚠️  Quote poll: %s", result.advisory)
        else:
            _logger.debug("Quote poll ok: %d symbols", len(result.succeeded))

    def start(self) -> AsyncIOScheduler:
        """
        Start the scheduler and register the poll job.
        Must be called from inside a running event loop.
        """
        if self._scheduler is not None:
            return self._scheduler

        scheduler = AsyncIOScheduler(timezone=self._timezone)

        # ------------------------------------------------------------
        # QUOTE POLL JOB
        # Immediately, then every interval
        # ------------------------------------------------------------
        scheduler.add_job(
            self.poll_job,
            trigger=IntervalTrigger(seconds=self._interval_seconds, timezone=self._timezone),
            id=POLL_JOB_ID,
            next_run_time=datetime.now(self._timezone),
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

        scheduler.start()
        self._scheduler = scheduler

        _logger.info("✅ Scheduler started (quote poll every %ss)", self._interval_seconds)
        return scheduler

    def shutdown(self) -> None:
        """
        Shutdown the scheduler safely.
        """
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            _logger.info("🛑 Scheduler shut down")
