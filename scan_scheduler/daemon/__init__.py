"""Polling daemon for executing due schedules."""

from .models import DaemonTickResult, ScheduleOutcome
from .service import SchedulerDaemon

__all__ = [
    "SchedulerDaemon",
    "DaemonTickResult",
    "ScheduleOutcome",
]
