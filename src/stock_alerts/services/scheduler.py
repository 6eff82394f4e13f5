"""
Scheduling service for Stock Alerts.

Runs recurring background jobs (digest e-mails, session cleanup) on top of
APScheduler's asyncio scheduler.

Two flavours share the same start/stop/run_now contract:
- RecurringJobScheduler fires every ``interval_ms``
- CronJobScheduler fires at a fixed UTC time of day, optionally on one weekday

Each instance owns its own APScheduler instance, so several jobs run side by
side without sharing state. Timer-driven runs never propagate exceptions;
``run_now()`` is the only call that hands a job's error back to the caller.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from stock_alerts.utils.exceptions import SchedulingError
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)

JobFunction = Callable[[], Awaitable[Any]]

DEFAULT_INTERVAL_MS = 60 * 60 * 1000  # 1 hour


@dataclass
class SchedulerOptions:
    """Options for interval-based jobs."""
    interval_ms: int = DEFAULT_INTERVAL_MS
    run_on_start: bool = True

    def __post_init__(self):
        if self.interval_ms <= 0:
            raise SchedulingError("Scheduler interval must be positive", {"interval_ms": self.interval_ms})


class BaseJobScheduler:
    """
    Shared start/stop/run_now machinery.

    Timer ticks spawn the run as its own task, so ``stop()`` only prevents
    future ticks and never cancels a run in progress. A tick that arrives
    while the previous timer-driven run is still going is skipped.
    """

    def __init__(self, job: JobFunction, name: str):
        self.job = job
        self.name = name
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._current_run: Optional[asyncio.Task] = None
        self.last_started_at: Optional[datetime] = None
        self.last_completed_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def _build_trigger(self):
        raise NotImplementedError

    def _describe_schedule(self) -> str:
        raise NotImplementedError

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure an APScheduler instance for this job."""
        return AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            executors={'default': AsyncIOExecutor()},
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 30
            },
            timezone=timezone.utc
        )

    def start(self) -> None:
        """
        Arm the timer.

        Must be called from inside the running event loop. Calling it on a
        running scheduler only logs.
        """
        if self._scheduler is not None:
            logger.info(f"Scheduler '{self.name}' is already running")
            return

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            raise SchedulingError(f"Scheduler '{self.name}' must be started inside a running event loop")

        scheduler = self._create_scheduler()
        scheduler.add_job(
            self._tick,
            trigger=self._build_trigger(),
            id=self.name,
            name=self.name,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(f"Scheduler '{self.name}' started ({self._describe_schedule()})")

    def stop(self) -> None:
        """Disarm the timer. A run already in progress finishes on its own."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info(f"Scheduler '{self.name}' stopped")

    async def wait_idle(self) -> None:
        """Wait until a timer-driven run in progress has finished."""
        run = self._current_run
        if run is None or run.done():
            return

        logger.info(f"Waiting for running job '{self.name}' to finish...")
        await asyncio.wait([run])

    async def run_now(self) -> Any:
        """Run the job once outside the schedule, returning its result or raising its error."""
        try:
            return await self._execute()
        except Exception as e:
            logger.error(f"Job '{self.name}' failed: {e}")
            raise

    def get_next_run_time(self) -> Optional[datetime]:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(self.name)
        return job.next_run_time if job else None

    def get_status(self) -> Dict[str, Any]:
        next_run = self.get_next_run_time()
        return {
            "name": self.name,
            "running": self.is_running,
            "schedule": self._describe_schedule(),
            "next_run": next_run.isoformat() if next_run else None,
            "last_started_at": self.last_started_at.isoformat() if self.last_started_at else None,
            "last_completed_at": self.last_completed_at.isoformat() if self.last_completed_at else None,
            "last_error": self.last_error,
        }

    async def _execute(self) -> Any:
        logger.info(f"Executing job '{self.name}'...")
        self.last_started_at = datetime.now(timezone.utc)
        start_time = time.monotonic()

        try:
            result = await self.job()
        except Exception as e:
            self.last_error = str(e) or type(e).__name__
            raise

        self.last_completed_at = datetime.now(timezone.utc)
        self.last_error = None
        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(f"Job '{self.name}' completed in {duration_ms}ms")
        return result

    async def _run_guarded(self) -> None:
        try:
            await self._execute()
        except Exception as e:
            logger.error(f"Scheduled run of '{self.name}' failed: {e}", exc_info=True)

    def _spawn_run(self) -> None:
        if self._current_run is not None and not self._current_run.done():
            logger.warning(f"Previous run of '{self.name}' still in progress, skipping tick")
            return
        self._current_run = asyncio.get_running_loop().create_task(self._run_guarded())

    async def _tick(self) -> None:
        self._spawn_run()


class RecurringJobScheduler(BaseJobScheduler):
    """Runs a job every ``interval_ms``, optionally once right at start."""

    def __init__(self, job: JobFunction, options: Optional[SchedulerOptions] = None,
                 name: str = "recurring_job"):
        super().__init__(job, name)
        self.options = options or SchedulerOptions()

    def _build_trigger(self) -> IntervalTrigger:
        return IntervalTrigger(seconds=self.options.interval_ms / 1000, timezone=timezone.utc)

    def _describe_schedule(self) -> str:
        minutes = self.options.interval_ms / 1000 / 60
        return f"interval: {minutes:g} minutes"

    def start(self) -> None:
        was_running = self.is_running
        super().start()
        if not was_running and self.options.run_on_start:
            self._spawn_run()


class CronJobScheduler(BaseJobScheduler):
    """Runs a job at ``hour:minute`` UTC every day, or on one weekday."""

    def __init__(self, job: JobFunction, hour: int, minute: int = 0,
                 day_of_week: Optional[str] = None, enabled: bool = True,
                 name: str = "cron_job"):
        super().__init__(job, name)
        if not 0 <= hour <= 23 or not 0 <= minute <= 59:
            raise SchedulingError("Invalid schedule time", {"hour": hour, "minute": minute})
        self.hour = hour
        self.minute = minute
        self.day_of_week = day_of_week
        self.enabled = enabled

    def _build_trigger(self) -> CronTrigger:
        return CronTrigger(
            hour=self.hour,
            minute=self.minute,
            day_of_week=self.day_of_week,
            timezone=timezone.utc,
        )

    def _describe_schedule(self) -> str:
        when = f"{self.hour:02d}:{self.minute:02d} UTC"
        if self.day_of_week:
            return f"weekly on {self.day_of_week} at {when}"
        return f"daily at {when}"

    def start(self) -> None:
        if not self.enabled:
            logger.info(f"Scheduler '{self.name}' is disabled")
            return
        super().start()
        next_run = self.get_next_run_time()
        if next_run:
            logger.info(f"Next run of '{self.name}' scheduled for {next_run.isoformat()}")
