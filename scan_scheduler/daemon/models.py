"""Data models for daemon tick tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class ScheduleOutcome:
    """
    What happened to one due schedule during a tick.

    Attributes:
        schedule_id: ID of the schedule
        schedule_name: Name of the schedule
        executed: Whether the executor returned successfully
        error: Executor error message, if execution failed
        next_run: Recomputed next run (None if recomputation failed)
        persisted: Whether the updated schedule was written to storage
        persist_error: Recompute or storage error, if any
        skipped_reason: "deleted" or "disabled" when the schedule changed during
            execution and its run was not recorded
        scan_id: Scan ID reported by the executor
        duration_seconds: Time spent on this schedule
    """

    schedule_id: str
    schedule_name: str
    executed: bool = False
    error: Optional[str] = None
    next_run: Optional[datetime] = None
    persisted: bool = False
    persist_error: Optional[str] = None
    skipped_reason: Optional[str] = None
    scan_id: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def had_errors(self) -> bool:
        return not self.executed or (not self.persisted and self.skipped_reason is None)


@dataclass
class DaemonTickResult:
    """
    Aggregate results of one polling tick.

    Attributes:
        tick_id: Unique ID propagated into the log context
        tick_started_at: Host-local time the tick began (the tick's "now")
        tick_finished_at: Host-local time the tick completed
        checked_count: Number of schedules loaded
        due_count: Number of enabled schedules that were due
        outcomes: Per-schedule results for the due schedules
        load_error: Storage error that prevented loading, if any
        skipped: Whether the tick was skipped (previous tick still running)
        total_duration_seconds: Total time for the tick
        had_errors: Whether loading, any execution, or any persist failed
    """

    tick_id: str
    tick_started_at: datetime
    tick_finished_at: datetime
    checked_count: int = 0
    due_count: int = 0
    outcomes: List[ScheduleOutcome] = field(default_factory=list)
    load_error: Optional[str] = None
    skipped: bool = False
    total_duration_seconds: float = 0.0
    had_errors: bool = False

    def __post_init__(self):
        """Compute aggregate flags from the outcomes."""
        if self.load_error or any(o.had_errors for o in self.outcomes):
            self.had_errors = True

    @property
    def executed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.executed)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.executed)
