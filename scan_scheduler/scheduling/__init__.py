"""Next-run calculation and schedule management."""

from .cron import CronCalculator, add_month, last_day_of_month
from .exceptions import CalculationError
from .manager import ScheduleManager, ScheduleTestResult

__all__ = [
    "CronCalculator",
    "CalculationError",
    "ScheduleManager",
    "ScheduleTestResult",
    "last_day_of_month",
    "add_month",
]
