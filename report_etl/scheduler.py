"""
Daily Scheduler

Fires one registered job at a fixed time of day on a background thread.
Ticks never overlap and missed ticks are not replayed.
"""

import logging
import threading
from datetime import datetime, time
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

JOB_ID = "daily_report"
# A tick that fires later than this (e.g. after a suspend) is dropped
MISFIRE_GRACE_SECONDS = 60


class DailyScheduler:
    """
    Runs a plain callable once a day.

    Args:
        run_at: Local trigger time
        timezone: IANA timezone name the trigger time is expressed in
        scheduler: Optional APScheduler instance (tests pass their own)
    """

    def __init__(
        self,
        run_at: time,
        timezone: str = "Europe/Moscow",
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.run_at = run_at
        self.timezone = timezone
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        self._job: Optional[Callable[[], object]] = None
        self._tick_lock = threading.Lock()
        logger.info("Scheduler initialized successfully")

    def register(self, job: Callable[[], object]) -> None:
        """
        Register the daily job, replacing any previous registration.

        Args:
            job: Callable run once per tick with no arguments
        """
        if not callable(job):
            raise TypeError("Scheduled job must be callable")
        self._job = job

        trigger = CronTrigger(
            hour=self.run_at.hour,
            minute=self.run_at.minute,
            timezone=self.timezone,
        )
        self._scheduler.add_job(
            self.tick,
            trigger,
            id=JOB_ID,
            name=getattr(job, "__name__", type(job).__name__),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
        )
        logger.info(f"Job scheduled to run daily at {self.run_at:%H:%M} ({self.timezone})")

    def tick(self) -> bool:
        """
        Run the registered job unless the previous tick is still running.

        Returns:
            True if the job ran, False if the tick was dropped
        """
        if self._job is None:
            logger.warning("Scheduler tick fired with no job registered")
            return False

        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous tick is still running; skipping this one")
            return False
        try:
            self._job()
        except Exception as e:
            # Keep the scheduler thread alive for tomorrow's tick
            logger.error(f"Scheduled job raised: {e}", exc_info=True)
        finally:
            self._tick_lock.release()
        return True

    def start(self) -> None:
        if self._job is None:
            raise RuntimeError("No job registered")
        self._scheduler.start()
        logger.info("Scheduler started successfully")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(JOB_ID)
        return getattr(job, "next_run_time", None) if job else None

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop firing ticks.

        Args:
            wait: Block until an in-flight tick has finished
        """
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Scheduler shut down successfully")
