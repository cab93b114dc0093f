"""Main entry point for the scan scheduler command-line interface."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import os
import sys
import time
from datetime import timedelta
from pathlib import Path
from typing import List, Optional

from scan_scheduler.config.duration import DurationParseError, parse_duration
from scan_scheduler.config.exceptions import ConfigurationError
from scan_scheduler.config.loader import apply_overrides, load_config
from scan_scheduler.config.models import ExecutorMode, SchedulerConfig
from scan_scheduler.daemon import SchedulerDaemon
from scan_scheduler.domain.exceptions import ScheduleValidationError
from scan_scheduler.domain.models import LAST_DAY_OF_MONTH, Pattern, ScanConfig
from scan_scheduler.executor import BurpRestExecutor, DryRunExecutor, ScheduleExecutor
from scan_scheduler.executor.exceptions import ExecutionError
from scan_scheduler.logging import get_logger
from scan_scheduler.logging.config import configure_logging
from scan_scheduler.persistence import JSONScheduleStorage, PersistenceError, open_storage
from scan_scheduler.reporting import ConsoleReporter
from scan_scheduler.scheduling import CalculationError, ScheduleManager

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str], no_color: bool = False
) -> SchedulerConfig:
    """
    Load configuration and apply overrides.

    Priority: CLI > environment > config file > defaults.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config, env_config = load_config(config_path)
    return apply_overrides(config, env_config, log_level=log_level_override, no_color=no_color)


def build_executor(config: SchedulerConfig) -> ScheduleExecutor:
    """Executor selected by ``executor.mode``."""
    if config.executor.mode == ExecutorMode.BURP.value:
        return BurpRestExecutor(
            host=config.executor.host,
            port=config.executor.port,
            api_key=config.executor.api_key,
            timeout=config.executor.request_timeout,
        )
    return DryRunExecutor()


def parse_day_of_month(value: str) -> int:
    """``"last"`` -> -1, otherwise the integer day (range is checked on validation)."""
    if value.strip().lower() == "last":
        return LAST_DAY_OF_MONTH
    try:
        return int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid day number: {value}") from None


def parse_days(value: str) -> List[str]:
    return [day.strip() for day in value.split(",") if day.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scan-scheduler",
        description="Scan Scheduler - recurring security scans on a daily, weekly, or monthly cadence",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: ~/.scan-scheduler/config.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")

    commands = parser.add_subparsers(dest="command", metavar="<command>")
    commands.required = True

    create = commands.add_parser("create", help="Create a new schedule")
    create.add_argument("type", choices=["daily", "weekly", "monthly"], help="Schedule type")
    create.add_argument("--time", required=True, help="Time of day, HH:MM (24-hour)")
    create.add_argument("--name", required=True, help="Unique schedule name")
    create.add_argument("--days", type=parse_days, help="Weekdays for weekly schedules, e.g. mon,fri")
    create.add_argument(
        "--day", type=parse_day_of_month, help="Day of month (1-31 or 'last') for monthly schedules"
    )
    target = create.add_mutually_exclusive_group(required=True)
    target.add_argument("--url", help="Scan a single URL")
    target.add_argument("--url-list", help="Scan URLs listed in a file")
    target.add_argument("--nmap", help="Scan hosts from an Nmap XML file")
    create.add_argument("--config-number", help="Scan configuration number")
    create.add_argument("--burp-config", help="Named Burp scan configuration")
    create.add_argument("--auto-export", action="store_true", help="Export results automatically")
    create.add_argument("--export-dir", help="Directory for exported results")
    create.add_argument("--scan-name", help="Name given to each launched scan")

    commands.add_parser("list", help="List all schedules")

    status = commands.add_parser("status", help="Show schedule status")
    status.add_argument("schedule", nargs="?", help="Schedule ID or name (default: all)")

    due = commands.add_parser("due", help="List schedules due soon")
    due.add_argument("--within", help="Horizon, e.g. 2h or 1d (default: due_soon_window)")

    delete = commands.add_parser("delete", help="Delete a schedule")
    delete.add_argument("schedule", help="Schedule ID or name")
    delete.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    enable = commands.add_parser("enable", help="Enable a schedule")
    enable.add_argument("schedule", help="Schedule ID or name")

    disable = commands.add_parser("disable", help="Disable a schedule")
    disable.add_argument("schedule", help="Schedule ID or name")

    rename = commands.add_parser("rename", help="Rename a schedule")
    rename.add_argument("schedule", help="Schedule ID or name")
    rename.add_argument("new_name", help="New unique name")

    test = commands.add_parser("test", help="Validate a schedule and show what would run")
    test.add_argument("schedule", help="Schedule ID or name")

    daemon = commands.add_parser("daemon", help="Run the scheduler daemon")
    daemon.add_argument(
        "--foreground", "-f", action="store_true", help="Run in the foreground (Ctrl+C to stop)"
    )
    daemon.add_argument(
        "--once", action="store_true", help="Run a single tick immediately and exit"
    )

    commands.add_parser("backup", help="Back up the schedule storage file")

    restore = commands.add_parser("restore", help="Restore schedules from a backup")
    restore.add_argument("backup_path", type=Path, help="Backup file to restore")

    commands.add_parser("info", help="Show storage information")

    return parser


def cmd_create(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    if args.url:
        scan_type, target = "url", args.url
    elif args.url_list:
        scan_type, target = "url_list", args.url_list
    else:
        scan_type, target = "nmap", args.nmap

    parameters = {}
    if args.config_number:
        parameters["config_number"] = args.config_number
    if args.burp_config:
        parameters["burp_config"] = args.burp_config
    if args.auto_export:
        parameters["auto_export"] = "true"
    if args.export_dir:
        parameters["export_dir"] = args.export_dir
    if args.scan_name:
        parameters["scan_name"] = args.scan_name

    schedule = manager.create_schedule(
        name=args.name,
        schedule_type=args.type,
        pattern=Pattern(time=args.time, days=args.days, day_of_month=args.day),
        scan_config=ScanConfig(scan_type=scan_type, target=target, parameters=parameters),
    )
    reporter.schedule_created(schedule)
    return 0


def cmd_list(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    schedules = manager.list_schedules()
    reporter.schedules_table(schedules)
    if not schedules:
        reporter.info("Use 'scan-scheduler create' to create a new schedule")
    return 0


def cmd_status(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    # Execution history only exists inside the daemon process
    show_history = manager.executor is not None
    if args.schedule:
        reporter.statuses_table([manager.get_status(args.schedule)], show_history=show_history)
    else:
        reporter.statuses_table(manager.get_all_statuses(), show_history=show_history)
    return 0


def cmd_due(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    if args.within:
        try:
            within = timedelta(seconds=parse_duration(args.within))
        except DurationParseError as e:
            reporter.error(str(e))
            return 2
    else:
        within = timedelta(seconds=config.due_soon_window_seconds)

    reporter.due_soon(manager.list_due_soon(within), within)
    return 0


def cmd_delete(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    schedule = manager.get_schedule(args.schedule)

    if not args.yes:
        reporter.warning("Are you sure you want to delete this schedule?")
        reporter.schedule_detail(schedule)
        answer = input("Type 'yes' to confirm deletion: ")
        if answer.strip().lower() != "yes":
            reporter.info("Deletion cancelled")
            return 0

    manager.delete_schedule(schedule.id)
    reporter.success(f"Schedule deleted: {schedule.name} ({schedule.id})")
    return 0


def cmd_enable(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    schedule = manager.set_enabled(args.schedule, True)
    reporter.success(f"Schedule enabled: {schedule.name}, next run {schedule.next_run}")
    return 0


def cmd_disable(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    schedule = manager.set_enabled(args.schedule, False)
    reporter.success(f"Schedule disabled: {schedule.name}")
    return 0


def cmd_rename(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    schedule = manager.rename_schedule(args.schedule, args.new_name)
    reporter.success(f"Schedule {schedule.id} renamed to {schedule.name}")
    return 0


def cmd_test(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    result = manager.test_schedule(args.schedule)
    reporter.test_result(result)
    return 0 if result.valid else 1


def cmd_daemon(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    daemon = SchedulerDaemon(
        storage=manager.storage,
        executor=manager.executor or build_executor(config),
        calculator=manager.calculator,
        interval_seconds=config.check_interval_seconds,
    )

    if args.once:
        result = daemon.poll_once()
        reporter.tick_result(result)
        if not result.due_count and not result.load_error:
            reporter.info("No schedules due")
        return 1 if result.had_errors else 0

    if not args.foreground:
        reporter.warning("Background daemon mode is not available")
        reporter.info("Use --foreground under a process supervisor (systemd, supervisord, ...)")
        reporter.info("Example: scan-scheduler daemon --foreground")
        return 0

    reporter.success(
        f"Scheduler daemon started in foreground mode "
        f"(checking every {config.check_interval_seconds}s, executor: {config.executor.mode})"
    )
    reporter.info("Press Ctrl+C to stop the daemon")
    daemon.run_forever()
    return 0


def cmd_backup(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    backup_path = manager.storage.backup()
    reporter.success(f"Backup written to {backup_path}")
    return 0


def cmd_restore(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    count = manager.storage.restore(args.backup_path)
    reporter.success(f"Restored {count} schedules from {args.backup_path}")
    return 0


def cmd_info(args, manager: ScheduleManager, reporter: ConsoleReporter, config) -> int:
    reporter.storage_info(manager.storage.get_storage_info())
    return 0


COMMANDS = {
    "create": cmd_create,
    "list": cmd_list,
    "status": cmd_status,
    "due": cmd_due,
    "delete": cmd_delete,
    "enable": cmd_enable,
    "disable": cmd_disable,
    "rename": cmd_rename,
    "test": cmd_test,
    "daemon": cmd_daemon,
    "backup": cmd_backup,
    "restore": cmd_restore,
    "info": cmd_info,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the scan scheduler.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    reporter = ConsoleReporter(use_color=not (args.no_color or os.getenv("NO_COLOR")))

    try:
        # Load configuration before logging so the format is known
        config = load_runtime_config(args.config, args.log_level, no_color=args.no_color)
        if not config.output.color and reporter.use_color:
            reporter = ConsoleReporter(use_color=False)

        is_daemon = args.command == "daemon"
        configure_logging(
            level=config.logging.level,
            format_type=config.logging.format,
            environment=os.environ.get("ENVIRONMENT", "local"),
            log_file=config.get_log_path() if is_daemon else None,
        )

        logger.debug(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "command": args.command,
                "storage_path": str(config.get_storage_path()),
                "executor_mode": config.executor.mode,
            },
        )

        storage: JSONScheduleStorage = open_storage(config.get_storage_path())
        executor = build_executor(config) if is_daemon else None
        manager = ScheduleManager(storage, executor=executor)

        exit_code = COMMANDS[args.command](args, manager, reporter, config)

        if is_daemon:
            logger.info(
                "Scan scheduler stopped",
                extra={
                    "event": "service.stopping",
                    "uptime_seconds": round(time.time() - start_time, 2),
                },
            )
        return exit_code

    except ConfigurationError as e:
        reporter.error(f"Configuration Error: {e}")
        return 1
    except ScheduleValidationError as e:
        reporter.error(str(e))
        return 1
    except PersistenceError as e:
        reporter.error(str(e))
        logger.debug(
            f"Storage error: {e}",
            extra={"event": "cli.storage_error", "error_type": type(e).__name__},
        )
        return 1
    except (CalculationError, ExecutionError) as e:
        reporter.error(str(e))
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0


if __name__ == "__main__":
    sys.exit(main())
