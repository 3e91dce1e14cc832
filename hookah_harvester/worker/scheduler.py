"""APScheduler job definitions for periodic catalogue refreshes."""

import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from hookah_harvester.cache import InMemoryCache
from hookah_harvester.config import settings
from hookah_harvester.services import CatalogService

logger = logging.getLogger(__name__)


@dataclass
class JobRun:
    job_id: str
    started_at: datetime
    duration_seconds: float
    success: bool
    result: Any = None
    error: Optional[str] = None


class JobRunRecorder:
    """Run/error counters and a bounded history of job executions."""

    def __init__(self, max_history: Optional[int] = None):
        self.max_history = max_history or settings.scheduler_max_history
        self.history: deque[JobRun] = deque(maxlen=self.max_history)
        self.run_count = 0
        self.error_count = 0

    def wrap(self, job_id: str, func: Callable[[], Awaitable[Any]]) -> Callable[[], Awaitable[Any]]:
        """Coroutine function that runs ``func`` and records the outcome."""

        async def run():
            started_at = datetime.now(timezone.utc)
            started = time.perf_counter()
            self.run_count += 1
            try:
                result = await func()
            except Exception as e:
                self.error_count += 1
                self.history.append(
                    JobRun(job_id, started_at, time.perf_counter() - started, False, error=str(e))
                )
                logger.error(f"Scheduled job {job_id} failed: {e}", exc_info=True)
                return None

            self.history.append(JobRun(job_id, started_at, time.perf_counter() - started, True, result=result))
            logger.info(f"Scheduled job {job_id} finished: {result}")
            return result

        run.__name__ = f"run_{job_id}"
        return run

    def last_run(self, job_id: Optional[str] = None) -> Optional[JobRun]:
        for run in reversed(self.history):
            if job_id is None or run.job_id == job_id:
                return run
        return None

    def stats(self) -> dict[str, Any]:
        return {
            "runs": self.run_count,
            "errors": self.error_count,
            "history": len(self.history),
        }


def _cron(expression: str) -> CronTrigger:
    return CronTrigger.from_crontab(expression, timezone=settings.scheduler_timezone)


def setup_scheduler(
    service: CatalogService,
    cache: InMemoryCache,
    recorder: Optional[JobRunRecorder] = None,
) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Jobs:
    - brands_refresh: brand list, on settings.brands_refresh_cron
    - flavors_refresh: flavor lists of cached brands, on settings.flavors_refresh_cron
    - full_refresh: everything, on settings.full_refresh_cron
    - cache_sweep: expired cache entries, every cache_check_period_seconds

    Returns:
        Configured (not started) scheduler instance
    """
    recorder = recorder or JobRunRecorder()
    scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)

    async def sweep_cache() -> int:
        return cache.sweep()

    jobs = [
        ("brands_refresh", service.refresh_brands, _cron(settings.brands_refresh_cron), "Refresh brand list"),
        ("flavors_refresh", service.refresh_flavors, _cron(settings.flavors_refresh_cron), "Refresh cached flavors"),
        ("full_refresh", service.refresh_all, _cron(settings.full_refresh_cron), "Refresh all catalogue data"),
        (
            "cache_sweep",
            sweep_cache,
            IntervalTrigger(seconds=settings.cache_check_period_seconds),
            "Remove expired cache entries",
        ),
    ]

    for job_id, func, trigger, name in jobs:
        scheduler.add_job(
            recorder.wrap(job_id, func),
            trigger,
            id=job_id,
            name=name,
            max_instances=1,  # Prevent overlapping runs
            coalesce=True,
            misfire_grace_time=600,
            replace_existing=True,
        )

    logger.info(
        "Scheduler configured: brands at '%s', flavors at '%s', full refresh at '%s' (%s), "
        "cache sweep every %d seconds",
        settings.brands_refresh_cron,
        settings.flavors_refresh_cron,
        settings.full_refresh_cron,
        settings.scheduler_timezone,
        settings.cache_check_period_seconds,
    )

    return scheduler


def start_scheduler(
    service: CatalogService,
    cache: InMemoryCache,
    recorder: Optional[JobRunRecorder] = None,
) -> Optional[AsyncIOScheduler]:
    """Build and start the scheduler on the running loop; None when disabled."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled (HARVESTER_SCHEDULER_ENABLED=false)")
        return None
    scheduler = setup_scheduler(service, cache, recorder)
    scheduler.start()
    return scheduler
