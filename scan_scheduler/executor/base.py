"""Base executor class shared by all executor implementations.

An executor turns a due schedule into a launched scan. Subclasses implement
``_launch``; the base class validates the schedule first, times the launch,
and keeps an in-memory execution history per schedule.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from scan_scheduler.domain.exceptions import ScheduleValidationError
from scan_scheduler.domain.models import ExecutionRecord, Schedule
from scan_scheduler.logging import get_logger
from scan_scheduler.utils.timestamps import local_now

from .exceptions import ExecutionError

logger = get_logger(__name__, component="executor")

# (scan_id, results_path)
LaunchResult = Tuple[Optional[str], Optional[str]]


class ScheduleExecutor(ABC):
    """Contract between the daemon and whatever actually runs scans.

    No timeout is imposed here: a slow launch delays the rest of the tick.
    """

    def __init__(self) -> None:
        self._history: Dict[str, List[ExecutionRecord]] = defaultdict(list)
        self._history_lock = threading.Lock()

    def execute_schedule(self, schedule: Schedule) -> ExecutionRecord:
        """
        Launch the scan described by ``schedule``.

        Args:
            schedule: Due schedule to execute

        Returns:
            Successful ExecutionRecord (also appended to the history)

        Raises:
            ExecutionError: If the schedule cannot be executed or the launch fails;
                a failed record is appended to the history before raising
        """
        executed_at = local_now()
        started = time.monotonic()

        try:
            self.validate_schedule(schedule)
            scan_id, results_path = self._launch(schedule)
        except ExecutionError as e:
            if e.schedule_id is None:
                e.schedule_id = schedule.id
            self._record(
                ExecutionRecord(
                    schedule_id=schedule.id,
                    executed_at=executed_at,
                    success=False,
                    duration_seconds=time.monotonic() - started,
                    error=str(e),
                )
            )
            raise

        record = ExecutionRecord(
            schedule_id=schedule.id,
            executed_at=executed_at,
            success=True,
            duration_seconds=time.monotonic() - started,
            scan_id=scan_id,
            results_path=results_path,
        )
        self._record(record)

        logger.info(
            f"Executed schedule {schedule.name}",
            extra={
                "event": "executor.schedule.executed",
                "schedule_id": schedule.id,
                "scan_id": scan_id,
                "duration_seconds": round(record.duration_seconds, 3),
            },
        )
        return record

    def validate_schedule(self, schedule: Schedule) -> None:
        """
        Check that ``schedule`` can be executed by this executor.

        Raises:
            ExecutionError: If the schedule is invalid
        """
        try:
            schedule.validate()
        except ScheduleValidationError as e:
            raise ExecutionError(f"schedule is not executable: {e}", schedule_id=schedule.id) from e

    def get_execution_history(self, schedule_id: str) -> List[ExecutionRecord]:
        """Records of every execution of ``schedule_id`` in this process, oldest first."""
        with self._history_lock:
            return list(self._history.get(schedule_id, []))

    @abstractmethod
    def _launch(self, schedule: Schedule) -> LaunchResult:
        """Start the scan.

        Returns:
            (scan_id, results_path); either may be None

        Raises:
            ExecutionError: If the scan could not be started
        """
        pass

    def _record(self, record: ExecutionRecord) -> None:
        with self._history_lock:
            self._history[record.schedule_id].append(record)
