"""
Scheduler for periodic operational jobs (queue and pipeline reports).
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from croniter import croniter


logger = logging.getLogger(__name__)


class Scheduler:
    """APScheduler on the running event loop; jobs live in memory only.

    A slow report never overlaps itself and missed runs collapse into one.
    """

    def __init__(self, timezone: str = "UTC"):
        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 60},
            timezone=timezone,
        )
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    async def start(self) -> None:
        if not self._started:
            self._scheduler.start()
            self._started = True
            logger.info("Scheduler started")

    async def stop(self) -> None:
        if self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("Scheduler stopped")

    def add_job(
        self,
        func: Callable,
        job_id: str,
        *,
        cron: Optional[str] = None,
        interval_seconds: Optional[int] = None,
        args: Sequence[Any] = (),
    ) -> None:
        """Schedule ``func`` on a five-field cron expression or a fixed interval."""
        if cron and interval_seconds:
            raise ValueError("Pass either cron or interval_seconds, not both")
        if cron:
            if not self.validate_cron_expression(cron):
                raise ValueError(f"Invalid cron expression: {cron}")
            trigger = CronTrigger.from_crontab(cron)
        elif interval_seconds:
            trigger = IntervalTrigger(seconds=interval_seconds)
        else:
            raise ValueError("Either cron or interval_seconds must be specified")

        self._scheduler.add_job(func, trigger=trigger, id=job_id, args=list(args), replace_existing=True)
        logger.info(f"Scheduled job {job_id}: {cron or f'every {interval_seconds}s'}")

    @staticmethod
    def validate_cron_expression(cron_expression: str) -> bool:
        """Validate a five-field cron expression using croniter."""
        if len(cron_expression.split()) != 5:
            logger.error(f"Cron expression must have 5 parts: '{cron_expression}'")
            return False
        if not croniter.is_valid(cron_expression):
            logger.error(f"Invalid cron expression '{cron_expression}'")
            return False
        return True

    def remove_job(self, job_id: str) -> None:
        self._scheduler.remove_job(job_id)
        logger.info(f"Removed job: {job_id}")

    def job_ids(self) -> List[str]:
        return [job.id for job in self._scheduler.get_jobs()]
