"""Scheduling for the polling loop."""

from rackwatch.scheduler.runner import ScheduledRunner, SchedulerError

__all__ = ["ScheduledRunner", "SchedulerError"]
