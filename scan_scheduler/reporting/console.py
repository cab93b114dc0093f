"""Console output for the command-line interface.

Colour is decided once, by whoever builds the reporter (configuration,
``NO_COLOR``, or ``--no-color``), and passed in explicitly.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from scan_scheduler.daemon.models import DaemonTickResult
from scan_scheduler.domain.models import Schedule, ScheduleStatus
from scan_scheduler.scheduling.manager import ScheduleTestResult
from scan_scheduler.utils.timestamps import format_duration, format_timestamp


class ConsoleReporter:
    """Renders schedules, statuses, and messages to the terminal."""

    def __init__(
        self,
        use_color: bool = True,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """
        Args:
            use_color: Whether to emit colour and styles
            console: Console for regular output (stdout by default)
            err_console: Console for errors (stderr by default)
        """
        self.use_color = use_color
        self.console = console or Console(no_color=not use_color, highlight=False)
        self.err_console = err_console or Console(
            stderr=True, no_color=not use_color, highlight=False
        )

    def info(self, message: str) -> None:
        self.console.print(f"[cyan]\\[i][/cyan] {escape(message)}")

    def success(self, message: str) -> None:
        self.console.print(f"[green][+][/green] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow][!][/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[bold red][-] Error:[/bold red] {escape(message)}")

    def schedule_created(self, schedule: Schedule) -> None:
        self.success(f"Schedule created: {schedule.name} ({schedule.id})")
        self.schedule_detail(schedule)

    def schedule_detail(self, schedule: Schedule) -> None:
        rows = [
            ("ID", schedule.id),
            ("Name", schedule.name),
            ("Type", _enum_value(schedule.type)),
            ("Pattern", schedule.describe()),
            ("Scan", f"{_enum_value(schedule.scan_config.scan_type)} {schedule.scan_config.target}"),
            ("Enabled", "yes" if schedule.enabled else "no"),
            ("Created", format_timestamp(schedule.created_at)),
            ("Last run", format_timestamp(schedule.last_run)),
            ("Next run", format_timestamp(schedule.next_run)),
        ]
        for key, value in sorted(schedule.scan_config.parameters.items()):
            rows.append((f"  {key}", value))

        table = Table(show_header=False, box=None, pad_edge=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in rows:
            table.add_row(label, escape(value))
        self.console.print(table)

    def schedules_table(self, schedules: List[Schedule], title: str = "Schedules") -> None:
        if not schedules:
            self.console.print("[dim]No schedules found.[/dim]")
            return

        table = Table(title=title)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Pattern")
        table.add_column("Target")
        table.add_column("Next run", no_wrap=True)
        table.add_column("Enabled")

        for schedule in schedules:
            table.add_row(
                schedule.id,
                escape(schedule.name),
                schedule.describe(),
                escape(schedule.scan_config.target),
                format_timestamp(schedule.next_run),
                "[green]yes[/green]" if schedule.enabled else "[red]no[/red]",
            )

        self.console.print(table)

    def statuses_table(self, statuses: List[ScheduleStatus], show_history: bool = True) -> None:
        """
        Render schedule statuses.

        Run counts and errors come from an executor's in-memory history, so
        callers without one (the CLI outside the daemon) pass show_history=False.
        """
        if not statuses:
            self.console.print("[dim]No schedules found.[/dim]")
            return

        table = Table(title="Schedule status")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name")
        table.add_column("Last run", no_wrap=True)
        table.add_column("Next run", no_wrap=True)
        table.add_column("In")
        if show_history:
            table.add_column("Runs", justify="right")
            table.add_column("Last error")

        for status in statuses:
            schedule = status.schedule
            row = [
                schedule.id,
                escape(schedule.name),
                format_timestamp(schedule.last_run),
                format_timestamp(schedule.next_run),
                status.next_run_in,
            ]
            if show_history:
                row += [str(status.execution_count), escape(status.last_error or "")]
            table.add_row(*row)

        self.console.print(table)

    def due_soon(self, schedules: List[Schedule], within: timedelta) -> None:
        self.schedules_table(schedules, title=f"Due within {format_duration(within)}")

    def test_result(self, result: ScheduleTestResult) -> None:
        self.info("Testing schedule (dry-run mode)")
        self.schedule_detail(result.schedule)

        if not result.valid:
            self.error(f"Schedule validation failed: {result.error}")
            return

        self.success("Schedule validation: PASSED")
        self.success(f"Next execution time: {format_timestamp(result.next_run)}")
        for when in result.upcoming[1:]:
            self.console.print(f"    then {format_timestamp(when)}")

        self.console.print("\n[bold]Command that would be executed:[/bold]")
        self.console.print(f"  {escape(result.command or '')}")
        self.success("Dry-run completed successfully. No actual scan was executed.")

    def tick_result(self, result: DaemonTickResult) -> None:
        if result.load_error:
            self.error(f"Failed to load schedules: {result.load_error}")
            return

        for outcome in result.outcomes:
            if outcome.executed:
                self.success(f"Executed schedule: {outcome.schedule_name}")
            else:
                self.error(f"Failed to execute schedule {outcome.schedule_name}: {outcome.error}")

            if outcome.persisted:
                self.info(f"Next run for {outcome.schedule_name}: {format_timestamp(outcome.next_run)}")
            elif outcome.skipped_reason:
                self.warning(f"Schedule {outcome.schedule_name} was {outcome.skipped_reason} during execution")
            else:
                self.error(f"Failed to update schedule {outcome.schedule_name}: {outcome.persist_error}")

    def storage_info(self, info: Dict[str, Any]) -> None:
        table = Table(show_header=False, box=None, pad_edge=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")

        for key, value in info.items():
            if hasattr(value, "strftime"):
                value = format_timestamp(value)
            table.add_row(key.replace("_", " ").capitalize(), escape(str(value)))

        self.console.print(table)


def _enum_value(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value)
