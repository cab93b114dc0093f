"""Dry-run executor: reports the scan command instead of running it."""

import shlex
from typing import List

from scan_scheduler.domain.models import ScanType, Schedule
from scan_scheduler.logging import get_logger

from .base import LaunchResult, ScheduleExecutor

logger = get_logger(__name__, component="executor")

SCANNER_COMMAND = "burp-cli"

TARGET_FLAGS = {
    ScanType.URL: "-s",
    ScanType.URL_LIST: "-sl",
    ScanType.NMAP: "-sn",
}

# Parameter key -> CLI flag, in the order flags are emitted
PARAMETER_FLAGS = [
    ("config_number", "-cn"),
    ("burp_config", "-bc"),
    ("export_dir", "-e"),
    ("scan_name", "-sname"),
]


def build_scan_command(schedule: Schedule, program: str = SCANNER_COMMAND) -> List[str]:
    """Argument vector of the scanner invocation equivalent to ``schedule``.

    Unknown parameters are ignored. ``auto_export`` becomes ``-a`` only when
    its value is ``"true"``.

    Example:
        >>> build_scan_command(schedule)  # doctest: +SKIP
        ['burp-cli', '-s', 'https://example.com', '-cn', '1', '-a']
    """
    config = schedule.scan_config
    argv = [program, TARGET_FLAGS[ScanType(config.scan_type)], config.target]

    for key, flag in PARAMETER_FLAGS:
        value = config.parameters.get(key)
        if value:
            argv.extend([flag, value])

    if config.parameters.get("auto_export", "").lower() == "true":
        argv.append("-a")

    return argv


class DryRunExecutor(ScheduleExecutor):
    """Validates schedules and logs what would run, without running anything."""

    def __init__(self, program: str = SCANNER_COMMAND) -> None:
        super().__init__()
        self.program = program

    def describe_command(self, schedule: Schedule) -> str:
        """Shell-quoted command line for display."""
        return " ".join(shlex.quote(part) for part in build_scan_command(schedule, self.program))

    def _launch(self, schedule: Schedule) -> LaunchResult:
        command = self.describe_command(schedule)
        logger.info(
            f"Dry run for {schedule.name}: {command}",
            extra={
                "event": "executor.dry_run",
                "schedule_id": schedule.id,
                "command": command,
            },
        )
        return None, None
