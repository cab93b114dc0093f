"""Next-run calculation for daily, weekly, and monthly schedules.

All arithmetic is done on naive host-local datetimes. Adding a day moves the
calendar date and keeps the wall-clock HH:MM, so occurrences stay on their
configured time across DST changes.

The weekly and monthly searches are bounded loops (8 days, 13 months). With
at least one configured weekday a match always exists within 8 days, and a
day-of-month between 1 and 31 always exists within 13 months (any 31st is at
most two months away), so the bounds are never hit for a valid schedule.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from scan_scheduler.domain.exceptions import ScheduleValidationError
from scan_scheduler.domain.models import (
    LAST_DAY_OF_MONTH,
    Schedule,
    ScheduleType,
    weekday_number,
)
from scan_scheduler.logging import get_logger

from .exceptions import CalculationError

logger = get_logger(__name__, component="cron")

WEEKLY_SEARCH_DAYS = 8
MONTHLY_SEARCH_MONTHS = 13
RUN_WINDOW = timedelta(seconds=30)


def last_day_of_month(year: int, month: int) -> int:
    """Last calendar day of a month: (first day of next month) - 1 day.

    Example:
        >>> last_day_of_month(2024, 2)
        29
        >>> last_day_of_month(2023, 2)
        28
    """
    if month == 12:
        first_of_next = date(year + 1, 1, 1)
    else:
        first_of_next = date(year, month + 1, 1)
    return (first_of_next - timedelta(days=1)).day


def add_month(dt: datetime) -> datetime:
    """First day of the following month, keeping the time of day."""
    if dt.month == 12:
        return dt.replace(year=dt.year + 1, month=1, day=1)
    return dt.replace(month=dt.month + 1, day=1)


def _at(day: datetime, hour: int, minute: int) -> datetime:
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


class CronCalculator:
    """Computes occurrences of a schedule's pattern."""

    def calculate_next_run(self, schedule: Schedule, from_time: datetime) -> datetime:
        """
        Earliest occurrence of the schedule's pattern strictly after ``from_time``.

        Args:
            schedule: Schedule to evaluate (validated first)
            from_time: Reference instant (naive host-local)

        Returns:
            Next occurrence as a naive host-local datetime

        Raises:
            ScheduleValidationError: If the schedule is invalid
            CalculationError: If no occurrence is found within the search bound
        """
        try:
            schedule.validate()
        except ScheduleValidationError as e:
            raise ScheduleValidationError(f"invalid schedule: {e}") from e

        hour, minute = schedule.pattern.hour_minute()
        kind = ScheduleType(schedule.type)

        if kind == ScheduleType.DAILY:
            return self._next_daily(hour, minute, from_time)
        if kind == ScheduleType.WEEKLY:
            return self._next_weekly(hour, minute, schedule.pattern.normalized_days(), from_time)
        return self._next_monthly(hour, minute, schedule.pattern.day_of_month, from_time)

    def is_time_to_run(self, schedule: Schedule, now: datetime) -> bool:
        """
        Whether ``now`` falls within 30 seconds either side of the occurrence
        following the schedule's last run.

        A schedule that never ran is measured from its creation time. Invalid
        schedules are never due.
        """
        reference = schedule.last_run or schedule.created_at
        try:
            next_run = self.calculate_next_run(schedule, reference + timedelta(seconds=1))
        except (ScheduleValidationError, CalculationError) as e:
            logger.debug(
                f"Cannot evaluate schedule {schedule.id}: {e}",
                extra={"event": "cron.due_check.failed", "schedule_id": schedule.id},
            )
            return False

        return next_run - RUN_WINDOW < now < next_run + RUN_WINDOW

    def get_time_until_next(self, schedule: Schedule, now: datetime) -> timedelta:
        """
        Time from ``now`` until the next occurrence; never negative.

        The occurrence is computed relative to the last run (or ``now`` if the
        schedule never ran). If that lies in the past, it is recomputed from
        ``now``.
        """
        from_time = schedule.last_run if schedule.last_run is not None else now

        remaining = self.calculate_next_run(schedule, from_time) - now
        if remaining < timedelta(0):
            remaining = self.calculate_next_run(schedule, now) - now

        return remaining

    def get_next_execution_times(
        self, schedule: Schedule, count: int, from_time: datetime
    ) -> List[datetime]:
        """The next ``count`` occurrences after ``from_time``, in order."""
        times: List[datetime] = []
        current = from_time

        for _ in range(count):
            next_run = self.calculate_next_run(schedule, current)
            times.append(next_run)
            current = next_run + timedelta(minutes=1)

        return times

    def _next_daily(self, hour: int, minute: int, from_time: datetime) -> datetime:
        target = _at(from_time, hour, minute)

        if target <= from_time:
            target += timedelta(days=1)

        return target

    def _next_weekly(
        self, hour: int, minute: int, days: List[str], from_time: datetime
    ) -> datetime:
        target_weekdays = {weekday_number(day) for day in days}

        current = from_time
        for offset in range(WEEKLY_SEARCH_DAYS):
            if current.weekday() in target_weekdays:
                target = _at(current, hour, minute)
                # Today only counts while its time is still ahead
                if offset > 0 or target > from_time:
                    return target
            current += timedelta(days=1)

        raise CalculationError("could not calculate next weekly execution time")

    def _next_monthly(
        self, hour: int, minute: int, day_of_month: Optional[int], from_time: datetime
    ) -> datetime:
        current = from_time

        for offset in range(MONTHLY_SEARCH_MONTHS):
            last_day = last_day_of_month(current.year, current.month)

            if day_of_month == LAST_DAY_OF_MONTH:
                target_day = last_day
            elif day_of_month > last_day:
                # e.g. the 31st in a 30-day month
                current = add_month(current)
                continue
            else:
                target_day = day_of_month

            target = datetime(current.year, current.month, target_day, hour, minute)
            if offset > 0 or target > from_time:
                return target

            current = add_month(current)

        raise CalculationError("could not calculate next monthly execution time")
