"""Core domain models for schedules, patterns, and scan payloads.

This module defines the data structures shared by every layer:
- Pattern: time of day plus the type-dependent recurrence descriptor
- ScanConfig: the opaque payload forwarded to the executor
- Schedule: a persisted, recurring scan
- ExecutionRecord / ScheduleStatus: execution bookkeeping and status views

Pydantic handles the type-level parsing (enums, ints, timestamps). The
semantic invariants live in the explicit ``validate()`` methods, which storage
and the calculator call before every write and every next-run computation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from scan_scheduler.utils.timestamps import ensure_local, parse_time_of_day

from .exceptions import ScheduleValidationError

LAST_DAY_OF_MONTH = -1

# Full lowercase weekday name keyed by every accepted spelling
_DAY_ALIASES: Dict[str, str] = {
    "monday": "monday",
    "tuesday": "tuesday",
    "wednesday": "wednesday",
    "thursday": "thursday",
    "friday": "friday",
    "saturday": "saturday",
    "sunday": "sunday",
    "mon": "monday",
    "tue": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "fri": "friday",
    "sat": "saturday",
    "sun": "sunday",
}

# Python weekday numbers (Monday == 0)
WEEKDAY_NUMBERS: Dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


class ScheduleType(str, Enum):
    """Recurrence kinds."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ScanType(str, Enum):
    """Scan target kinds understood by the executor."""

    URL = "url"
    URL_LIST = "url_list"
    NMAP = "nmap"


def is_valid_day_name(day: str) -> bool:
    """True for full or three-letter weekday names, any case."""
    return isinstance(day, str) and day.lower() in _DAY_ALIASES


def normalize_day_name(day: str) -> str:
    """Map ``"Fri"``/``"friday"`` to ``"friday"``; unknown names are only lowercased."""
    lowered = day.lower()
    return _DAY_ALIASES.get(lowered, lowered)


def weekday_number(day: str) -> int:
    """Python weekday number for a day name.

    Raises:
        ScheduleValidationError: If the name is not a weekday
    """
    normalized = normalize_day_name(day)
    if normalized not in WEEKDAY_NUMBERS:
        raise ScheduleValidationError(f"invalid day name: {day}")
    return WEEKDAY_NUMBERS[normalized]


def _coerce_type(value: Any, enum_cls, label: str, choices: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ScheduleValidationError(f"{label} must be {choices}") from None


class Pattern(BaseModel):
    """When a schedule fires.

    ``time`` is "HH:MM" in host-local 24-hour time. ``days`` is used only by
    weekly schedules and ``day_of_month`` (1-31, or -1 for the last calendar
    day) only by monthly ones; a daily pattern carries neither.
    """

    time: str = Field(..., description="Time of day, HH:MM (24-hour, host-local)")
    days: Optional[List[str]] = Field(None, description="Weekday names (weekly only)")
    day_of_month: Optional[int] = Field(
        None, description="1-31, or -1 for the last day of the month (monthly only)"
    )

    @field_validator("days")
    @classmethod
    def empty_days_to_none(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Treat an empty day list as absent."""
        return v or None

    @field_validator("day_of_month")
    @classmethod
    def zero_day_to_none(cls, v: Optional[int]) -> Optional[int]:
        """Treat day 0 as absent."""
        return v or None

    def validate(self, schedule_type: Any) -> None:  # type: ignore[override]
        """Check the pattern against the invariants of ``schedule_type``.

        Raises:
            ScheduleValidationError: Naming the first violated invariant
        """
        try:
            parse_time_of_day(self.time)
        except ValueError as e:
            raise ScheduleValidationError(str(e)) from e

        kind = _coerce_type(
            schedule_type, ScheduleType, "schedule type", "'daily', 'weekly', or 'monthly'"
        )

        if kind == ScheduleType.DAILY:
            if self.days:
                raise ScheduleValidationError("daily schedules should not specify days")
            if self.day_of_month:
                raise ScheduleValidationError("daily schedules should not specify day_of_month")

        elif kind == ScheduleType.WEEKLY:
            if not self.days:
                raise ScheduleValidationError("weekly schedules must specify at least one day")
            if self.day_of_month:
                raise ScheduleValidationError("weekly schedules should not specify day_of_month")
            for day in self.days:
                if not is_valid_day_name(day):
                    raise ScheduleValidationError(f"invalid day name: {day}")

        else:
            if not self.day_of_month:
                raise ScheduleValidationError("monthly schedules must specify day_of_month")
            if self.days:
                raise ScheduleValidationError("monthly schedules should not specify days")
            if self.day_of_month < LAST_DAY_OF_MONTH or self.day_of_month > 31:
                raise ScheduleValidationError("day_of_month must be -1 (last day) or 1-31")

    def normalized_days(self) -> List[str]:
        """Day names in full lowercase form, in configured order."""
        return [normalize_day_name(day) for day in self.days or []]

    def hour_minute(self) -> tuple:
        """(hour, minute) parsed from ``time``."""
        return parse_time_of_day(self.time)


class ScanConfig(BaseModel):
    """Payload forwarded to the executor.

    The shape of ``target`` is checked here because it gates whether a
    schedule may be persisted at all.
    """

    scan_type: ScanType = Field(..., description="url, url_list, or nmap")
    target: str = Field(..., description="URL, URL list file, or Nmap XML file")
    parameters: Dict[str, str] = Field(
        default_factory=dict, description="Extra scan parameters passed through verbatim"
    )

    def validate(self) -> None:  # type: ignore[override]
        """Check the scan type and target shape.

        Raises:
            ScheduleValidationError: On an unknown scan type, empty target,
                non-HTTP URL, or a non-XML Nmap file
        """
        if not self.scan_type:
            raise ScheduleValidationError("scan_type cannot be empty")

        scan_type = _coerce_type(
            self.scan_type, ScanType, "scan_type", "'url', 'url_list', or 'nmap'"
        )

        if not self.target:
            raise ScheduleValidationError("target cannot be empty")

        if scan_type == ScanType.URL:
            if not self.target.startswith(("http://", "https://")):
                raise ScheduleValidationError("URL target must start with http:// or https://")
        elif scan_type == ScanType.NMAP:
            if not self.target.lower().endswith(".xml"):
                raise ScheduleValidationError("Nmap target must be an XML file")
        # url_list targets are file paths; existence is checked at execution time


class Schedule(BaseModel):
    """A persisted recurring scan.

    ``next_run`` is always consistent with ``type``/``pattern`` as of the last
    recompute. ``id`` and ``name`` are unique across stored schedules; storage
    enforces that, not this model.
    """

    id: str = Field(..., description="Opaque unique identifier")
    name: str = Field(..., description="Unique human-readable label")
    type: ScheduleType = Field(..., description="daily, weekly, or monthly")
    pattern: Pattern
    scan_config: ScanConfig
    created_at: datetime
    last_run: Optional[datetime] = None
    next_run: datetime
    enabled: bool = True

    @field_validator("created_at", "last_run", "next_run")
    @classmethod
    def to_local_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store timestamps as naive host-local time."""
        return ensure_local(v)

    def validate(self) -> None:  # type: ignore[override]
        """Check every invariant of the schedule, its pattern and its scan config.

        Raises:
            ScheduleValidationError: Naming the violated invariant
        """
        if not self.id:
            raise ScheduleValidationError("schedule ID cannot be empty")

        if not self.name:
            raise ScheduleValidationError("schedule name cannot be empty")

        kind = _coerce_type(
            self.type, ScheduleType, "schedule type", "'daily', 'weekly', or 'monthly'"
        )

        try:
            self.pattern.validate(kind)
        except ScheduleValidationError as e:
            raise ScheduleValidationError(f"invalid pattern: {e}") from e

        try:
            self.scan_config.validate()
        except ScheduleValidationError as e:
            raise ScheduleValidationError(f"invalid scan config: {e}") from e

    def describe(self) -> str:
        """Human-readable pattern, e.g. ``Weekly on mon, fri at 09:00``."""
        if self.type == ScheduleType.DAILY:
            return f"Daily at {self.pattern.time}"
        if self.type == ScheduleType.WEEKLY:
            return f"Weekly on {', '.join(self.pattern.days or [])} at {self.pattern.time}"
        if self.type == ScheduleType.MONTHLY:
            if self.pattern.day_of_month == LAST_DAY_OF_MONTH:
                return f"Monthly on last day at {self.pattern.time}"
            return f"Monthly on day {self.pattern.day_of_month} at {self.pattern.time}"
        return "Unknown pattern"

    def __str__(self) -> str:
        return f"{self.name} ({self.id}): {self.describe()} -> {self.scan_config.target}"

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready dict in the on-disk layout (absent fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)

    model_config = {"json_schema_extra": {"example": {
        "id": "sched_1a2b3c4d",
        "name": "Weekly perimeter scan",
        "type": "weekly",
        "pattern": {"time": "09:00", "days": ["mon", "fri"]},
        "scan_config": {
            "scan_type": "url",
            "target": "https://example.com",
            "parameters": {"config_number": "1"},
        },
        "created_at": "2025-03-01T08:12:40",
        "next_run": "2025-03-03T09:00:00",
        "enabled": True,
    }}}


def schedule_from_dict(data: Dict[str, Any]) -> Schedule:
    """Build a Schedule from raw values, with validation errors in domain terms.

    Pydantic type errors are flattened into a single ScheduleValidationError
    listing one message per field. The semantic ``validate()`` is not run
    here; callers decide when to run it.

    Raises:
        ScheduleValidationError: If the raw values cannot form a Schedule
    """
    try:
        return Schedule.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            if error["type"] == "missing":
                errors.append(f"missing required field: {field_path}")
            else:
                errors.append(f"{field_path}: {error['msg']}")
        raise ScheduleValidationError("invalid schedule data", errors=errors) from e


class ExecutionRecord(BaseModel):
    """Outcome of one executor run for a schedule."""

    schedule_id: str
    executed_at: datetime
    success: bool
    duration_seconds: float = 0.0
    error: Optional[str] = None
    scan_id: Optional[str] = None
    results_path: Optional[str] = None


class ScheduleStatus(BaseModel):
    """Status view of a schedule for the CLI."""

    schedule: Schedule
    is_running: bool = False
    last_error: Optional[str] = None
    next_run_in: str
    execution_count: int = 0
