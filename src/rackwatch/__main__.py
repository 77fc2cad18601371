"""
Entry point for the rackwatch CLI.

Usage:
    rackwatch             Run the monitor (polls every poll_interval seconds)
    rackwatch --run-once  Run one cycle immediately and exit
    rackwatch --test      Validate configuration and data files, then exit
    rackwatch --help      Show help message
    rackwatch --version   Show version and exit

Exit Codes:
    0 - Success
    1 - Configuration error (invalid settings)
    2 - Store error (thresholds, maintenance, readings or alert table unreadable)
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from types import FrameType
    from rackwatch.config import RackwatchSettings
    from rackwatch.cycle import CycleResult, MonitoringCycle

from rackwatch import __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_STORE_ERROR = 2


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="rackwatch",
        description="Evaluate PDU telemetry against rack thresholds and keep the critical alert table current",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   Success
  1   Configuration error
  2   Store error (data files missing or unreadable)

Environment Variables:
  CONFIG_PATH                   Path to YAML configuration file
  RACKWATCH_DATA_DIR            Directory for the alert table and history
  RACKWATCH_THRESHOLDS_PATH     Thresholds YAML (default: <data_dir>/thresholds.yaml)
  RACKWATCH_MAINTENANCE_PATH    Maintenance YAML (default: <data_dir>/maintenance.yaml)
  RACKWATCH_READINGS_PATH       Readings JSON (default: <data_dir>/readings.json)
  RACKWATCH_POLL_INTERVAL       Seconds between cycles (default: 60)
  RACKWATCH_BATCH_SIZE          PDUs per alert write batch (default: 10)
  RACKWATCH_LOG_LEVEL           Logging level: DEBUG, INFO, WARNING, ERROR
  RACKWATCH_LOG_FORMAT          Log format: json or text

Examples:
  # Run with config file
  CONFIG_PATH=/etc/rackwatch/config.yaml rackwatch

  # Check that every data file can be read
  rackwatch --test

  # Evaluate the current readings once
  rackwatch --run-once
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Validate configuration and data files, then exit",
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Run one monitoring cycle immediately and exit",
    )
    return parser.parse_args(argv)


def handle_sighup(signum: int, frame: Optional[FrameType]) -> None:
    """Handle SIGHUP signal for configuration reload."""
    from rackwatch.config.loader import reload_config
    from rackwatch.logging import get_logger

    log = get_logger()
    log.info("received_sighup", action="reloading configuration")
    try:
        reload_config()
        log.info("config_reloaded", status="success")
    except Exception as e:
        log.error("config_reload_failed", error=str(e))


def print_banner(config: "RackwatchSettings") -> None:
    """Print startup banner with version and configuration summary."""
    lines = [
        "",
        f"rackwatch v{__version__}",
        "=" * 40,
        f"Thresholds:    {config.thresholds_path}",
        f"Maintenance:   {config.maintenance_path}",
        f"Readings:      {config.readings_path}",
        f"Alert table:   {config.data_dir}",
        f"Poll Interval: {config.poll_interval}s",
        f"Batch Size:    {config.batch_size}",
        f"Log Level:     {config.log_level}",
        f"Log Format:    {config.log_format}",
        "=" * 40,
        "",
    ]
    print("\n".join(lines))


def build_cycle(config: "RackwatchSettings") -> "MonitoringCycle":
    """Wire the file stores, evaluator and alert lifecycle from settings."""
    from rackwatch.alerts import AlertLifecycleManager
    from rackwatch.cycle import MonitoringCycle
    from rackwatch.evaluation import RackEvaluator
    from rackwatch.stores.file import (
        JsonAlertStore,
        JsonlAlertHistoryStore,
        YamlMaintenanceStore,
        YamlThresholdStore,
    )

    history_store = JsonlAlertHistoryStore(config.data_dir) if config.history_enabled else None
    lifecycle = AlertLifecycleManager(
        store=JsonAlertStore(config.data_dir),
        history_store=history_store,
        batch_size=config.batch_size,
        batch_pause=config.batch_pause,
        workers=config.reconcile_workers,
    )
    return MonitoringCycle(
        threshold_store=YamlThresholdStore(config.thresholds_path),
        maintenance_store=YamlMaintenanceStore(config.maintenance_path),
        lifecycle=lifecycle,
        evaluator=RackEvaluator(workers=config.evaluation_workers),
    )


# One cycle (and so one alert lifecycle lock) per process, rebuilt on reload
_cycle: Optional["MonitoringCycle"] = None
_cycle_config: Optional["RackwatchSettings"] = None
_cycle_lock = threading.Lock()


def get_cycle(config: "RackwatchSettings") -> "MonitoringCycle":
    """Return the process-wide cycle for config.

    A new cycle is built only when config is a different settings object,
    i.e. after a SIGHUP reload.
    """
    global _cycle, _cycle_config
    with _cycle_lock:
        if _cycle is None or _cycle_config is not config:
            _cycle = build_cycle(config)
            _cycle_config = config
        return _cycle


def execute_cycle(config: "RackwatchSettings") -> "CycleResult":
    """Load the latest readings and run one monitoring cycle.

    Raises:
        RackwatchError: If the readings or the snapshots cannot be read
    """
    from rackwatch.sources import load_readings

    readings = load_readings(config.readings_path)
    return get_cycle(config).run(readings)


def run_cycle_job() -> None:
    """Scheduled job: run one cycle and record the outcome in the health file.

    Errors are logged rather than raised so the scheduler keeps polling;
    the next cycle starts from a fresh snapshot.
    """
    from rackwatch.config import get_config
    from rackwatch.exceptions import RackwatchError
    from rackwatch.health import HealthStatus, update_health_status
    from rackwatch.logging import get_logger

    log = get_logger()

    try:
        result = execute_cycle(get_config())

        details = {
            "evaluation": result.evaluation.as_log_fields(),
            "reconcile": result.reconcile.as_log_fields(),
        }
        if result.succeeded:
            update_health_status(HealthStatus.HEALTHY, details)
        else:
            update_health_status(HealthStatus.UNHEALTHY, details)

    except RackwatchError as e:
        log.error("cycle_failed", error=e.message, hint=e.hint)
        update_health_status(HealthStatus.UNHEALTHY, {"last_run": e.message})
    except Exception as e:
        log.error("job_failed", error=str(e))
        update_health_status(HealthStatus.UNHEALTHY, {"last_run": str(e)})


def check_data_files(config: "RackwatchSettings") -> int:
    """Read every store once and report the result.

    Returns:
        Exit code: EXIT_SUCCESS when everything is readable, else EXIT_STORE_ERROR
    """
    from rackwatch.exceptions import StoreError
    from rackwatch.sources import load_readings
    from rackwatch.stores.file import JsonAlertStore, YamlMaintenanceStore, YamlThresholdStore

    checks = [
        ("thresholds", lambda: len(YamlThresholdStore(config.thresholds_path).list_global())),
        ("maintenance racks", lambda: len(YamlMaintenanceStore(config.maintenance_path).list_rack_ids())),
        ("readings", lambda: len(load_readings(config.readings_path))),
        ("active alerts", lambda: len(JsonAlertStore(config.data_dir).list_active())),
    ]

    failed = False
    for label, check in checks:
        try:
            print(f"{label + ':':<20} {check()}")
        except StoreError as e:
            print(f"{label + ':':<20} ERROR {e.message}", file=sys.stderr)
            failed = True

    return EXIT_STORE_ERROR if failed else EXIT_SUCCESS


def main(argv: Optional[list] = None) -> int:
    """Main entry point for rackwatch.

    Returns:
        Exit code (0=success, 1=config error, 2=store error)
    """
    args = parse_args(argv)

    # Imported late so --help and --version work without a config
    from rackwatch.config import ConfigurationError, load_config
    from rackwatch.exceptions import RackwatchError
    from rackwatch.health import (
        HealthStatus,
        clear_health_status,
        set_health_file,
        update_health_status,
    )
    from rackwatch.logging import configure_logging, get_logger
    from rackwatch.scheduler import ScheduledRunner

    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SystemExit as e:
        # Validation errors cause sys.exit(1) in loader
        return e.code if isinstance(e.code, int) else EXIT_CONFIG_ERROR

    configure_logging(log_format=config.log_format, log_level=config.log_level)
    log = get_logger()
    set_health_file(config.health_file)

    if args.test:
        print_banner(config)
        code = check_data_files(config)
        print("Configuration and data files: OK" if code == EXIT_SUCCESS else "Data file check failed")
        return code

    if args.run_once:
        print_banner(config)
        log.info("run_once_mode", message="Running single monitoring cycle")
        try:
            result = execute_cycle(config)
        except RackwatchError as e:
            log.error("run_once_failed", error=e.message)
            print(f"\nCycle failed: {e}", file=sys.stderr)
            return e.exit_code
        if not result.succeeded:
            print("\nCycle abandoned: alert table unavailable", file=sys.stderr)
            return EXIT_STORE_ERROR
        return EXIT_SUCCESS

    print_banner(config)
    log.info("starting", version=__version__)
    update_health_status(HealthStatus.STARTING)

    # Config reload (Unix only)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, handle_sighup)

    runner = ScheduledRunner(poll_interval=config.poll_interval, timezone=config.timezone)
    log.info(
        "service_starting",
        poll_interval=config.poll_interval,
        timezone=config.timezone,
        data_dir=config.data_dir,
    )

    try:
        runner.run(func=run_cycle_job)
        return EXIT_SUCCESS
    except KeyboardInterrupt:
        log.info("shutdown", reason="keyboard interrupt")
        print("\nShutdown requested, exiting...")
        runner.shutdown()
        return EXIT_SUCCESS
    finally:
        clear_health_status()


if __name__ == "__main__":
    sys.exit(main())
