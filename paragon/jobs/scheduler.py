"""
Job Scheduler
=============
APScheduler-based timers for the trading session, running on the asyncio loop.
"""

import asyncio
import logging
from datetime import datetime, time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore

from ..utils.time_utils import EASTERN


logger = logging.getLogger("paragon.jobs.scheduler")

JobFunc = Callable[..., Awaitable[Any]]


@dataclass
class ScheduledJob:
    """Represents a scheduled job"""
    id: str
    name: str
    func: JobFunc
    trigger_time: Optional[time] = None       # For daily jobs
    run_at: Optional[datetime] = None         # For one-shot jobs
    interval_seconds: Optional[int] = None    # For interval jobs
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)


class JobScheduler:
    """
    Timers driving the session engine.

    Jobs:
    - Daily check (03:00 ET): read the market calendar, plan the day
    - Market open (one-shot): run the opening routine
    - Tick (every N seconds): trading loop
    - Market close (one-shot): run the closing routine

    Must be created while the event loop is running.

    Usage:
        scheduler = JobScheduler()
        scheduler.add_daily_job("daily_check", time(3, 0), engine.run_daily_check)
        scheduler.start()
    """

    def __init__(self, timezone=EASTERN, event_loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize scheduler.

        Args:
            timezone: Timezone for scheduling (default: US/Eastern)
            event_loop: Loop to run jobs on (default: the running loop)
        """
        self.timezone = timezone

        jobstores = {
            'default': MemoryJobStore()
        }
        job_defaults = {
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Only one instance at a time
            'misfire_grace_time': 60,  # 1 minute grace
        }

        self._scheduler = AsyncIOScheduler(
            jobstores=jobstores,
            job_defaults=job_defaults,
            timezone=self.timezone,
            event_loop=event_loop or asyncio.get_running_loop(),
        )

        self._jobs: Dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _wrap_job(self, job: ScheduledJob) -> JobFunc:
        """Wrap job coroutine to log start, duration and failures"""
        async def wrapper():
            logger.debug("Running job: %s", job.name)
            start_time = datetime.now()
            try:
                result = await job.func(*job.args, **job.kwargs)
            except Exception as e:
                logger.error("Job %s failed: %s", job.name, e, exc_info=True)
                raise
            finally:
                if job.run_at is not None:
                    self._jobs.pop(job.id, None)

            elapsed = (datetime.now() - start_time).total_seconds()
            logger.debug("Job %s completed in %.2fs", job.name, elapsed)
            return result

        return wrapper

    def _add(self, job: ScheduledJob, trigger) -> None:
        self._jobs[job.id] = job
        self._scheduler.add_job(
            self._wrap_job(job),
            trigger,
            id=job.id,
            name=job.name,
            replace_existing=True,
        )

    def add_daily_job(
        self,
        job_id: str,
        run_time: time,
        func: JobFunc,
        name: Optional[str] = None,
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ):
        """
        Add a job to run once daily at a specific time.

        Args:
            job_id: Unique job identifier
            run_time: Time to run (market time)
            func: Coroutine function to execute
            name: Human-readable name
            args: Positional arguments for func
            kwargs: Keyword arguments for func
        """
        job = ScheduledJob(
            id=job_id,
            name=name or job_id,
            func=func,
            trigger_time=run_time,
            args=args,
            kwargs=kwargs or {},
        )
        trigger = CronTrigger(
            hour=run_time.hour,
            minute=run_time.minute,
            timezone=self.timezone,
        )
        self._add(job, trigger)
        logger.info("Added daily job: %s at %s", job.name, run_time)

    def add_date_job(
        self,
        job_id: str,
        run_at: datetime,
        func: JobFunc,
        name: Optional[str] = None,
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ):
        """Add a job that runs once at ``run_at``."""
        job = ScheduledJob(
            id=job_id,
            name=name or job_id,
            func=func,
            run_at=run_at,
            args=args,
            kwargs=kwargs or {},
        )
        self._add(job, DateTrigger(run_date=run_at, timezone=self.timezone))
        logger.info("Added one-shot job: %s at %s", job.name, run_at.strftime("%Y-%m-%d %H:%M:%S"))

    def add_interval_job(
        self,
        job_id: str,
        interval_seconds: int,
        func: JobFunc,
        name: Optional[str] = None,
        start_date: Optional[datetime] = None,
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ):
        """
        Add a job to run at regular intervals.

        Args:
            job_id: Unique job identifier
            interval_seconds: Seconds between runs
            func: Coroutine function to execute
            name: Human-readable name
            start_date: First run is one interval after this (default: now)
            args: Positional arguments for func
            kwargs: Keyword arguments for func
        """
        job = ScheduledJob(
            id=job_id,
            name=name or job_id,
            func=func,
            interval_seconds=interval_seconds,
            args=args,
            kwargs=kwargs or {},
        )
        trigger = IntervalTrigger(seconds=interval_seconds, start_date=start_date, timezone=self.timezone)
        self._add(job, trigger)
        logger.info("Added interval job: %s every %ds", job.name, interval_seconds)

    def remove_job(self, job_id: str):
        """Remove a scheduled job; unknown ids are ignored"""
        self._jobs.pop(job_id, None)
        try:
            self._scheduler.remove_job(job_id)
            logger.info("Removed job: %s", job_id)
        except JobLookupError:
            logger.debug("Job %s already gone", job_id)

    def has_job(self, job_id: str) -> bool:
        return self._scheduler.get_job(job_id) is not None

    def start(self):
        """Start the scheduler"""
        if not self._running:
            self._scheduler.start()
            self._running = True
            logger.info("Scheduler started")

    def stop(self, wait: bool = False):
        """Stop the scheduler and drop every pending timer"""
        if self._running:
            self._scheduler.remove_all_jobs()
            self._scheduler.shutdown(wait=wait)
            self._jobs.clear()
            self._running = False
            logger.info("Scheduler stopped")

    def get_next_run_time(self, job_id: str) -> Optional[datetime]:
        """Get next scheduled run time for a job"""
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job else None

    def get_status(self) -> str:
        """Get scheduler status"""
        status = []
        status.append(f"Scheduler: {'Running' if self._running else 'Stopped'}")
        status.append(f"Jobs: {len(self._jobs)}")
        status.append("")

        for job_id, job in self._jobs.items():
            next_run = self.get_next_run_time(job_id)
            next_run_str = next_run.strftime("%H:%M:%S") if next_run else "N/A"

            if job.trigger_time:
                schedule = f"Daily at {job.trigger_time.strftime('%H:%M')}"
            elif job.interval_seconds:
                schedule = f"Every {job.interval_seconds}s"
            elif job.run_at:
                schedule = f"Once at {job.run_at.strftime('%H:%M')}"
            else:
                schedule = "Unknown"

            status.append(f"  {job.name}: {schedule} (next: {next_run_str})")

        return "\n".join(status)
