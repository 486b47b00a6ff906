"""
Response Watch Scheduler
========================

Runs the first-response watcher on an APScheduler interval. The first
pass fires right after startup so tickets that went overdue while the
service was down are reported without waiting a full interval.
"""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from quixdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

WatchJob = Callable[[], Awaitable[None]]


class ResponseWatchScheduler:
    """Owns one AsyncIOScheduler with a single watcher job."""

    JOB_ID = "first_response_watch"

    def __init__(self, interval_seconds: int = 60):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def next_run_at(self) -> Optional[datetime]:
        if not self.is_running:
            return None
        job = self._scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job else None

    async def start(self, job: WatchJob) -> None:
        """Schedule `job` every interval, starting now. Must run inside the event loop."""
        if self.is_running:
            logger.warning("Response watch scheduler already running")
            return

        scheduler = AsyncIOScheduler(timezone=timezone.utc)
        scheduler.add_job(
            job,
            "interval",
            seconds=self.interval_seconds,
            id=self.JOB_ID,
            name="First response watch",
            next_run_time=datetime.now(timezone.utc),
            # A slow pass must not stack up behind itself
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.interval_seconds,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            "Response watch scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        if not self.is_running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Response watch scheduler stopped")
