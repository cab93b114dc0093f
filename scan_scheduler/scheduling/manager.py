"""Schedule management used by the command-line interface.

ScheduleManager wraps storage and the calculator with the operations a user
performs by hand: create, inspect, rename, enable/disable, delete, and
dry-run a schedule. The daemon does not go through this class.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from scan_scheduler.domain.exceptions import ScheduleValidationError
from scan_scheduler.domain.models import (
    Pattern,
    ScanConfig,
    Schedule,
    ScheduleStatus,
    schedule_from_dict,
)
from scan_scheduler.executor.base import ScheduleExecutor
from scan_scheduler.executor.dry_run import DryRunExecutor
from scan_scheduler.logging import get_logger
from scan_scheduler.persistence.exceptions import ScheduleNotFoundError
from scan_scheduler.persistence.storage import JSONScheduleStorage
from scan_scheduler.utils.ids import generate_schedule_id
from scan_scheduler.utils.timestamps import format_duration, local_now

from .cron import CronCalculator
from .exceptions import CalculationError

logger = get_logger(__name__, component="manager")

MAX_ID_ATTEMPTS = 5
UPCOMING_RUNS = 5


@dataclass
class ScheduleTestResult:
    """
    Outcome of a dry-run test of a stored schedule.

    Attributes:
        schedule: The schedule that was tested
        valid: Whether the schedule passed validation
        error: Validation or calculation error, if any
        next_run: Next occurrence from now (None when invalid)
        upcoming: The following occurrences, starting with next_run
        command: Equivalent scanner command line
    """

    schedule: Schedule
    valid: bool
    error: Optional[str] = None
    next_run: Optional[datetime] = None
    upcoming: List[datetime] = field(default_factory=list)
    command: Optional[str] = None


class ScheduleManager:
    """CLI-facing operations over stored schedules."""

    def __init__(
        self,
        storage: JSONScheduleStorage,
        calculator: Optional[CronCalculator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        executor: Optional[ScheduleExecutor] = None,
    ):
        """
        Args:
            storage: Initialized schedule storage
            calculator: Next-run calculator (a new one by default)
            clock: Source of "now" (defaults to local_now)
            executor: Executor whose history feeds status views, if any
        """
        self.storage = storage
        self.calculator = calculator or CronCalculator()
        self._clock = clock or local_now
        self.executor = executor

    def create_schedule(
        self,
        name: str,
        schedule_type: str,
        pattern: Pattern,
        scan_config: ScanConfig,
        enabled: bool = True,
    ) -> Schedule:
        """
        Create, validate, and persist a new schedule.

        The next run is computed once from the current time.

        Raises:
            ScheduleValidationError: If the schedule is invalid
            DuplicateScheduleError: If the name is already taken
            PersistenceError: If storage fails
        """
        now = self._clock()

        schedule = schedule_from_dict(
            {
                "id": self._new_id(),
                "name": name,
                "type": schedule_type,
                "pattern": pattern.model_dump(),
                "scan_config": scan_config.model_dump(),
                "created_at": now,
                "next_run": now,
                "enabled": enabled,
            }
        )
        schedule.next_run = self.calculator.calculate_next_run(schedule, now)

        self.storage.save_schedule(schedule)

        logger.info(
            f"Created schedule {schedule.name}",
            extra={
                "event": "manager.schedule.created",
                "schedule_id": schedule.id,
                "schedule_type": schedule.type,
                "next_run": schedule.next_run,
            },
        )
        return schedule

    def list_schedules(self) -> List[Schedule]:
        """All schedules ordered by next run."""
        return sorted(self.storage.load_schedules(), key=lambda s: s.next_run)

    def get_schedule(self, id_or_name: str) -> Schedule:
        """
        Look a schedule up by ID, falling back to its name.

        Raises:
            ScheduleNotFoundError: If neither matches
        """
        try:
            return self.storage.get_schedule_by_id(id_or_name)
        except ScheduleNotFoundError:
            pass

        try:
            return self.storage.get_schedule_by_name(id_or_name)
        except ScheduleNotFoundError:
            raise ScheduleNotFoundError(f"schedule not found: {id_or_name}") from None

    def rename_schedule(self, id_or_name: str, new_name: str) -> Schedule:
        """
        Raises:
            ScheduleNotFoundError: If the schedule does not exist
            ScheduleValidationError: If the new name is empty
            DuplicateScheduleError: If another schedule already has the name
        """
        schedule = self.get_schedule(id_or_name)
        old_name = schedule.name
        schedule.name = new_name.strip()

        self.storage.update_schedule(schedule)

        logger.info(
            f"Renamed schedule {old_name} to {schedule.name}",
            extra={"event": "manager.schedule.renamed", "schedule_id": schedule.id},
        )
        return schedule

    def set_enabled(self, id_or_name: str, enabled: bool) -> Schedule:
        """
        Enable or disable a schedule.

        Enabling recomputes the next run from now so that occurrences missed
        while disabled are not fired on the next tick.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
        """
        schedule = self.get_schedule(id_or_name)
        if schedule.enabled == enabled:
            return schedule

        schedule.enabled = enabled
        if enabled:
            schedule.next_run = self.calculator.calculate_next_run(schedule, self._clock())

        self.storage.update_schedule(schedule)

        logger.info(
            f"{'Enabled' if enabled else 'Disabled'} schedule {schedule.name}",
            extra={
                "event": "manager.schedule.enabled" if enabled else "manager.schedule.disabled",
                "schedule_id": schedule.id,
            },
        )
        return schedule

    def delete_schedule(self, id_or_name: str) -> Schedule:
        """
        Delete a schedule and return what was deleted.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
        """
        schedule = self.get_schedule(id_or_name)
        self.storage.delete_schedule(schedule.id)
        return schedule

    def calculate_next_run(self, id_or_name: str) -> datetime:
        """Next occurrence of a stored schedule from now; nothing is persisted."""
        schedule = self.get_schedule(id_or_name)
        return self.calculator.calculate_next_run(schedule, self._clock())

    def list_due_soon(self, within: timedelta) -> List[Schedule]:
        """Enabled schedules whose next run falls before ``now + within``, soonest first."""
        horizon = self._clock() + within
        return [
            schedule
            for schedule in self.list_schedules()
            if schedule.enabled and schedule.next_run <= horizon
        ]

    def get_status(self, id_or_name: str) -> ScheduleStatus:
        """
        Raises:
            ScheduleNotFoundError: If the schedule does not exist
        """
        return self._status_of(self.get_schedule(id_or_name))

    def get_all_statuses(self) -> List[ScheduleStatus]:
        return [self._status_of(schedule) for schedule in self.list_schedules()]

    def test_schedule(self, id_or_name: str) -> ScheduleTestResult:
        """
        Validate a stored schedule, compute its upcoming runs, and build the
        scanner command it would execute. Nothing is executed or persisted.

        Raises:
            ScheduleNotFoundError: If the schedule does not exist
        """
        schedule = self.get_schedule(id_or_name)

        try:
            schedule.validate()
            upcoming = self.calculator.get_next_execution_times(
                schedule, UPCOMING_RUNS, self._clock()
            )
        except (ScheduleValidationError, CalculationError) as e:
            return ScheduleTestResult(schedule=schedule, valid=False, error=str(e))

        return ScheduleTestResult(
            schedule=schedule,
            valid=True,
            next_run=upcoming[0],
            upcoming=upcoming,
            command=DryRunExecutor().describe_command(schedule),
        )

    def _status_of(self, schedule: Schedule) -> ScheduleStatus:
        now = self._clock()

        if not schedule.enabled:
            next_run_in = "disabled"
        else:
            try:
                next_run_in = format_duration(self.calculator.get_time_until_next(schedule, now))
            except (ScheduleValidationError, CalculationError) as e:
                next_run_in = f"unknown ({e})"

        history = self.executor.get_execution_history(schedule.id) if self.executor else []
        failures = [record for record in history if not record.success]

        return ScheduleStatus(
            schedule=schedule,
            next_run_in=next_run_in,
            last_error=failures[-1].error if failures else None,
            execution_count=len(history),
        )

    def _new_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            schedule_id = generate_schedule_id()
            if not self.storage.schedule_exists(schedule_id):
                return schedule_id
        raise ScheduleValidationError("could not generate a unique schedule ID")

    def counts(self) -> Dict[str, int]:
        """Totals used by summary output."""
        schedules = self.storage.load_schedules()
        enabled = sum(1 for schedule in schedules if schedule.enabled)
        return {"total": len(schedules), "enabled": enabled, "disabled": len(schedules) - enabled}
