"""Tests for scheduler."""

from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from rackwatch.scheduler.runner import CYCLE_JOB_ID, ScheduledRunner, SchedulerError


class TestScheduledRunner:
    """Test scheduler runner."""

    def test_init_defaults(self) -> None:
        """Default initialization."""
        runner = ScheduledRunner(poll_interval=60)
        assert runner.timezone == "UTC"
        assert runner.misfire_grace_time == 60

    def test_init_custom_misfire_grace_time(self) -> None:
        runner = ScheduledRunner(poll_interval=60, misfire_grace_time=300)
        assert runner.misfire_grace_time == 300

    @pytest.mark.parametrize("interval", [0, -5])
    def test_non_positive_interval_raises(self, interval: int) -> None:
        with pytest.raises(SchedulerError, match="poll_interval"):
            ScheduledRunner(poll_interval=interval)

    @patch("rackwatch.scheduler.runner.BlockingScheduler")
    def test_scheduler_prevents_overlap(self, mock_scheduler_class: MagicMock) -> None:
        """Jobs never overlap and missed runs are coalesced."""
        ScheduledRunner(poll_interval=30)._create_scheduler()

        job_defaults = mock_scheduler_class.call_args.kwargs["job_defaults"]
        assert job_defaults["max_instances"] == 1
        assert job_defaults["coalesce"] is True

    @patch("rackwatch.scheduler.runner.BlockingScheduler")
    def test_run_adds_interval_job(self, mock_scheduler_class: MagicMock) -> None:
        """Run schedules one interval job and starts the scheduler."""
        mock_scheduler = MagicMock()
        mock_scheduler_class.return_value = mock_scheduler
        # run() catches KeyboardInterrupt, so start() can exit immediately
        mock_scheduler.start.side_effect = KeyboardInterrupt

        job_func = MagicMock()
        ScheduledRunner(poll_interval=45).run(func=job_func)

        mock_scheduler.add_job.assert_called_once()
        args, kwargs = mock_scheduler.add_job.call_args
        assert args[0] is job_func
        assert isinstance(args[1], IntervalTrigger)
        assert args[1].interval.total_seconds() == 45
        assert kwargs["id"] == CYCLE_JOB_ID
        assert kwargs["next_run_time"] is not None
        mock_scheduler.start.assert_called_once()

    def test_shutdown_without_start_is_noop(self) -> None:
        ScheduledRunner(poll_interval=60).shutdown()

    @patch("rackwatch.scheduler.runner.BlockingScheduler")
    def test_shutdown_running_scheduler(self, mock_scheduler_class: MagicMock) -> None:
        mock_scheduler = MagicMock()
        mock_scheduler.running = True
        mock_scheduler.start.side_effect = KeyboardInterrupt
        mock_scheduler_class.return_value = mock_scheduler

        runner = ScheduledRunner(poll_interval=60)
        runner.run(func=MagicMock())
        runner.shutdown()

        mock_scheduler.shutdown.assert_called_once_with(wait=True)
