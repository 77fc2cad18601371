"""Polling runner using APScheduler."""

from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

log = structlog.get_logger()

CYCLE_JOB_ID = "monitoring_cycle"


class SchedulerError(Exception):
    """Raised when scheduler configuration fails."""

    pass


class ScheduledRunner:
    """APScheduler-based polling loop.

    Runs the monitoring cycle every ``poll_interval`` seconds. A cycle
    that is still running when the next one is due causes that run to be
    skipped rather than overlapped, and runs missed while the process was
    busy are coalesced into one.
    """

    def __init__(
        self,
        poll_interval: int,
        timezone: str = "UTC",
        misfire_grace_time: Optional[int] = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            poll_interval: Seconds between cycles
            timezone: IANA timezone for the scheduler
            misfire_grace_time: Seconds after the due time a missed run
                still executes (defaults to one poll interval)

        Raises:
            SchedulerError: If poll_interval is not positive
        """
        if poll_interval <= 0:
            raise SchedulerError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval
        self.timezone = timezone
        self.misfire_grace_time = misfire_grace_time or poll_interval
        self._scheduler: Optional[BlockingScheduler] = None

    def _create_scheduler(self) -> BlockingScheduler:
        """Create configured BlockingScheduler."""
        job_defaults = {
            "coalesce": True,
            "misfire_grace_time": self.misfire_grace_time,
            "max_instances": 1,
        }
        return BlockingScheduler(
            timezone=self.timezone,
            job_defaults=job_defaults,
        )

    def _add_interval_job(
        self,
        scheduler: BlockingScheduler,
        func: Callable[[], None],
    ) -> None:
        # First cycle runs immediately; later ones every poll_interval
        trigger = IntervalTrigger(seconds=self.poll_interval, timezone=self.timezone)
        scheduler.add_job(
            func,
            trigger,
            id=CYCLE_JOB_ID,
            next_run_time=datetime.now(dt_timezone.utc),
        )
        log.info(
            "job_scheduled",
            schedule_type="interval",
            poll_interval=self.poll_interval,
            timezone=self.timezone,
        )

    def run(self, func: Callable[[], None]) -> None:
        """Start polling; blocks until shutdown or interrupt.

        Args:
            func: Function to execute every poll interval
        """
        self._scheduler = self._create_scheduler()
        self._add_interval_job(self._scheduler, func)

        def on_job_error(event: Any) -> None:
            log.error("job_failed", error=str(event.exception))

        self._scheduler.add_listener(on_job_error, EVENT_JOB_ERROR)

        log.info("scheduler_starting", timezone=self.timezone)
        try:
            self._scheduler.start()
        except KeyboardInterrupt:
            log.info("scheduler_shutdown", reason="keyboard interrupt")

    def shutdown(self) -> None:
        """Gracefully shutdown the scheduler."""
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            log.info("scheduler_shutdown", reason="explicit shutdown")
