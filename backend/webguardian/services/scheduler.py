"""Scheduler service - one recurring check job per monitored site.

Concurrency model:
- Every site has its own interval job; jobs of different sites run in parallel
- In-flight checks across all sites are bounded by MAX_CONCURRENT_CHECKS
- Checks of the same site are serialized by a per-site lock, so status
  transitions are decided in the order the checks complete
- Shutdown stops future fires and waits for running checks to finish
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from itertools import count
from typing import Awaitable, Callable, Dict, Iterable, Optional, Set

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import settings
from ..exceptions import SchedulerStoppedError
from ..models import MonitoredSite
from .checker import CheckResult
from .monitoring import MonitoringService

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "cleanup_old_records"


class ScheduleState(str, Enum):
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"
    SUSPENDED = "suspended"


def site_job_id(site_id: int) -> str:
    return f"site-check-{site_id}"


def immediate_job_prefix(site_id: int) -> str:
    return f"site-check-{site_id}-now-"


class SchedulerService:
    """Owns the recurring check job of every monitored site."""

    def __init__(
        self,
        monitoring: MonitoringService,
        min_interval_seconds: Optional[int] = None,
        initial_delay_seconds: Optional[int] = None,
        max_concurrent_checks: Optional[int] = None,
        history_retention_days: Optional[int] = None,
    ):
        self.monitoring = monitoring
        self.min_interval_seconds = (
            min_interval_seconds if min_interval_seconds is not None
            else settings.min_check_interval_seconds
        )
        self.initial_delay_seconds = (
            initial_delay_seconds if initial_delay_seconds is not None
            else settings.initial_check_delay_seconds
        )
        self.max_concurrent_checks = max_concurrent_checks or settings.max_concurrent_checks
        self.history_retention_days = history_retention_days or settings.history_retention_days

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 30,
            },
        )
        self._running = False
        self._stopped = False
        self._semaphore = asyncio.Semaphore(self.max_concurrent_checks)
        self._site_locks: Dict[int, asyncio.Lock] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._trigger_seq = count(1)

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        """Start the scheduler. Must be called from the running event loop."""
        if self._running or self._stopped:
            return

        self.scheduler.add_job(
            self._cleanup_old_records,
            trigger=IntervalTrigger(hours=1),
            id=CLEANUP_JOB_ID,
            replace_existing=True,
        )
        self.scheduler.start()
        self._running = True
        logger.info(
            f"Scheduler started (min_interval={self.min_interval_seconds}s, "
            f"max_concurrent={self.max_concurrent_checks})"
        )

    async def shutdown(self):
        """Cancel all jobs and wait for in-flight checks to complete."""
        if self._stopped:
            return
        self._stopped = True
        self._running = False

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        current = asyncio.current_task()
        pending = [task for task in self._inflight if task is not current]
        if pending:
            logger.info(f"Waiting for {len(pending)} in-flight check(s) to finish")
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Scheduler stopped")

    def effective_interval(self, site: MonitoredSite) -> int:
        """Check period in seconds, never below the minimum."""
        interval = site.check_interval or settings.default_check_interval_seconds
        return max(int(interval), self.min_interval_seconds)

    def schedule(self, site: MonitoredSite):
        """Create or replace the recurring check job of a site.

        The first check fires after a short delay so that loading many
        sites at startup does not fire them all at once. A site in
        maintenance is registered suspended.
        """
        interval = self.effective_interval(site)
        start_date = datetime.now(timezone.utc) + timedelta(seconds=self.initial_delay_seconds)

        self.scheduler.add_job(
            self._run_scheduled_check,
            trigger=IntervalTrigger(seconds=interval, start_date=start_date),
            id=site_job_id(site.id),
            name=f"Check {site.url}",
            args=[site.id],
            replace_existing=True,
        )
        if site.maintenance_mode:
            self.scheduler.pause_job(site_job_id(site.id))
        logger.debug(f"Scheduled {site.url} every {interval}s")

    def schedule_all(self, sites: Iterable[MonitoredSite]) -> int:
        scheduled = 0
        for site in sites:
            self.schedule(site)
            scheduled += 1
        logger.info(f"{scheduled} site(s) scheduled for checking")
        return scheduled

    def unschedule(self, site: MonitoredSite):
        """Remove the check job of a site. No-op if it has none."""
        self._remove_jobs(site.id)
        logger.debug(f"Unscheduled {site.url}")

    def reschedule(self, site: MonitoredSite):
        """Re-register a site after its check interval changed."""
        self._remove_job(site_job_id(site.id))
        self.schedule(site)

    def trigger_now(self, site: MonitoredSite):
        """Fire an out-of-band check without touching the recurring cadence.

        Every trigger gets its own one-shot job, so a trigger arriving while
        an earlier check of the site is still running is queued behind it
        on the site lock instead of being dropped.
        """
        self.scheduler.add_job(
            self._run_scheduled_check,
            trigger=DateTrigger(run_date=datetime.now(timezone.utc)),
            id=f"{immediate_job_prefix(site.id)}{next(self._trigger_seq)}",
            name=f"Immediate check {site.url}",
            args=[site.id],
        )
        logger.debug(f"Immediate check triggered for {site.url}")

    def suspend(self, site: MonitoredSite):
        """Pause the recurring checks of a site (maintenance)."""
        if self.scheduler.get_job(site_job_id(site.id)) is not None:
            self.scheduler.pause_job(site_job_id(site.id))
            logger.debug(f"Suspended checks for {site.url}")

    def resume(self, site: MonitoredSite):
        """Resume the recurring checks of a site, scheduling it if needed."""
        if self.scheduler.get_job(site_job_id(site.id)) is None:
            self.schedule(site)
            return
        self.scheduler.resume_job(site_job_id(site.id))
        logger.debug(f"Resumed checks for {site.url}")

    def state(self, site_id: int) -> ScheduleState:
        job = self.scheduler.get_job(site_job_id(site_id))
        if job is None:
            return ScheduleState.UNSCHEDULED
        # Jobs added before start() have no next_run_time attribute yet
        if getattr(job, "next_run_time", True) is None:
            return ScheduleState.SUSPENDED
        return ScheduleState.SCHEDULED

    def add_report_job(self, job_id: str, func: Callable[[], Awaitable[bool]], **cron):
        """Run a report coroutine on a cron schedule (hour=8, day_of_week='mon', ...)."""
        self.scheduler.add_job(
            self._run_report,
            trigger=CronTrigger(**cron),
            id=job_id,
            args=[job_id, func],
            replace_existing=True,
        )
        logger.info(f"Report job {job_id} scheduled ({cron})")

    async def run_site_check(self, site_id: int) -> Optional[CheckResult]:
        """Check one site now, serialized with its scheduled checks.

        The check runs in its own task so that cancelling the caller (or
        stopping the scheduler) never aborts it half way.

        Raises:
            SchedulerStoppedError: If the scheduler was shut down
        """
        if self._stopped:
            raise SchedulerStoppedError()
        task = asyncio.ensure_future(self._locked_check(site_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return await asyncio.shield(task)

    async def _locked_check(self, site_id: int) -> Optional[CheckResult]:
        async with self.site_lock(site_id):
            async with self._semaphore:
                result = await self.monitoring.run_check_by_id(site_id)
        if result is None:
            # Site was deleted behind our back
            self._remove_jobs(site_id)
        return result

    async def _run_scheduled_check(self, site_id: int):
        if not self._running:
            return
        try:
            await self.run_site_check(site_id)
        except Exception:
            # Keep the job: the next tick proceeds normally
            logger.exception(f"Error checking site {site_id}")

    async def _run_report(self, job_id: str, func: Callable[[], Awaitable[bool]]):
        try:
            delivered = await func()
            if not delivered:
                logger.warning(f"Report {job_id} was not delivered by any channel")
        except Exception:
            logger.exception(f"Error running report {job_id}")

    async def _cleanup_old_records(self):
        """Delete check results older than the retention period."""
        cutoff = datetime.utcnow() - timedelta(days=self.history_retention_days)
        try:
            deleted = await self.monitoring.repository.purge_check_history(cutoff)
            logger.info(f"Cleaned up {deleted} old check record(s)")
        except Exception as e:
            logger.error(f"Error cleaning up records: {e}")

    def site_lock(self, site_id: int) -> asyncio.Lock:
        """Lock held while a site is checked.

        Configuration changes that must not interleave with a running check
        of the site take it too.
        """
        lock = self._site_locks.get(site_id)
        if lock is None:
            lock = self._site_locks[site_id] = asyncio.Lock()
        return lock

    def _remove_job(self, job_id: str):
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    def _remove_jobs(self, site_id: int):
        self._remove_job(site_job_id(site_id))
        prefix = immediate_job_prefix(site_id)
        for job in self.scheduler.get_jobs():
            if job.id.startswith(prefix):
                self._remove_job(job.id)
        lock = self._site_locks.get(site_id)
        if lock is not None and not lock.locked():
            del self._site_locks[site_id]
