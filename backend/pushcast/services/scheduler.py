"""Scheduler service - optional in-process triggers for periodic work.

Normally an external cron calls GET /api/check-campaigns. When SCHEDULER_ENABLED
is set, this service runs the same dispatch pass on an interval instead, and it
can also sweep expired device registrations.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..stores import TokenStore
from ..utils.clock import Clock, utcnow
from .dispatch_engine import DispatchEngine

logger = logging.getLogger(__name__)


class SchedulerService:
    """Runs the dispatch pass and the expiry sweep on fixed intervals."""

    def __init__(
        self,
        dispatch_engine: DispatchEngine,
        token_store: TokenStore,
        dispatch_interval_seconds: int = 60,
        dispatch_enabled: bool = True,
        sweep_interval_minutes: int = 60,
        sweep_enabled: bool = False,
        clock: Clock = utcnow,
    ):
        self._engine = dispatch_engine
        self._tokens = token_store
        self._dispatch_interval_seconds = dispatch_interval_seconds
        self._dispatch_enabled = dispatch_enabled
        self._sweep_interval_minutes = sweep_interval_minutes
        self._sweep_enabled = sweep_enabled
        self._clock = clock
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()

        if self._dispatch_enabled:
            # max_instances=1: a slow pass is never overlapped by the next tick
            self.scheduler.add_job(
                self.run_dispatch,
                trigger=IntervalTrigger(seconds=self._dispatch_interval_seconds),
                id="dispatch_campaigns",
                replace_existing=True,
                max_instances=1,
                misfire_grace_time=self._dispatch_interval_seconds,
            )

        if self._sweep_enabled:
            self.scheduler.add_job(
                self.sweep_expired_devices,
                trigger=IntervalTrigger(minutes=self._sweep_interval_minutes),
                id="sweep_expired_devices",
                replace_existing=True,
                max_instances=1,
            )

        self.scheduler.start()
        self._running = True
        logger.info(
            f"Scheduler started (dispatch={self._dispatch_enabled} every {self._dispatch_interval_seconds}s, "
            f"sweep={self._sweep_enabled})"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def run_dispatch(self):
        """Run one dispatch pass, logging instead of raising."""
        try:
            report = await self._engine.run_dispatch_pass()
            if report.campaigns_processed:
                logger.info(f"Scheduled dispatch processed {report.campaigns_processed} campaigns")
        except Exception as e:
            logger.error(f"Error running scheduled dispatch: {e}")

    async def sweep_expired_devices(self):
        """Delete registrations past their expiry."""
        try:
            removed = await self._tokens.delete_expired(self._clock())
            logger.info(f"Swept {removed} expired device registrations")
        except Exception as e:
            logger.error(f"Error sweeping expired devices: {e}")
