"""Domain models for the scan scheduler."""

from .exceptions import ScheduleValidationError
from .models import (
    LAST_DAY_OF_MONTH,
    ExecutionRecord,
    Pattern,
    ScanConfig,
    ScanType,
    Schedule,
    ScheduleStatus,
    ScheduleType,
    is_valid_day_name,
    normalize_day_name,
    schedule_from_dict,
    weekday_number,
)

__all__ = [
    "Schedule",
    "Pattern",
    "ScanConfig",
    "ScheduleType",
    "ScanType",
    "ExecutionRecord",
    "ScheduleStatus",
    "LAST_DAY_OF_MONTH",
    "ScheduleValidationError",
    "schedule_from_dict",
    "is_valid_day_name",
    "normalize_day_name",
    "weekday_number",
]
