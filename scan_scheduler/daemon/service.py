"""Polling daemon that fires due schedules.

Each tick loads every schedule, executes the enabled ones whose ``next_run``
has arrived, and persists the advanced ``next_run`` before moving on to the
next schedule. Due schedules are executed sequentially in load order.

Only one daemon may run per storage file; nothing enforces this across
processes.
"""

import signal
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import uuid4

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from scan_scheduler.domain.exceptions import ScheduleValidationError
from scan_scheduler.domain.models import Schedule
from scan_scheduler.executor.base import ScheduleExecutor
from scan_scheduler.executor.exceptions import ExecutionError
from scan_scheduler.logging import get_logger
from scan_scheduler.logging.context import log_context
from scan_scheduler.persistence.exceptions import PersistenceError, ScheduleNotFoundError
from scan_scheduler.persistence.storage import JSONScheduleStorage
from scan_scheduler.scheduling.cron import CronCalculator
from scan_scheduler.scheduling.exceptions import CalculationError
from scan_scheduler.utils.timestamps import local_now

from .models import DaemonTickResult, ScheduleOutcome

logger = get_logger(__name__, component="daemon")

JOB_ID = "schedule-poll"
DEFAULT_INTERVAL_SECONDS = 60


class SchedulerDaemon:
    """
    Drives schedule execution from a polling loop.

    ``poll_once`` is the unit of work and can be called directly (tests, one-off
    runs). ``start`` hands it to an APScheduler BackgroundScheduler so ticks
    run on a worker thread while the main thread handles signals.
    """

    def __init__(
        self,
        storage: JSONScheduleStorage,
        executor: ScheduleExecutor,
        calculator: Optional[CronCalculator] = None,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the daemon.

        Args:
            storage: Initialized schedule storage
            executor: Executor that launches due scans
            calculator: Next-run calculator (a new one by default)
            interval_seconds: Seconds between ticks
            clock: Source of "now" (defaults to local_now)
            shutdown_event: Optional event to set on shutdown for coordination
        """
        self.storage = storage
        self.executor = executor
        self.calculator = calculator or CronCalculator()
        self.interval_seconds = interval_seconds
        self.shutdown_event = shutdown_event or threading.Event()
        self._clock = clock or local_now
        self._tick_lock = threading.Lock()

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping ticks
                "coalesce": True,  # A delayed tick runs once
                "misfire_grace_time": interval_seconds,
            },
            timezone=timezone.utc,
        )

    def poll_once(self, now: Optional[datetime] = None) -> DaemonTickResult:
        """
        Run one tick: load, find due schedules, execute, advance, persist.

        Args:
            now: The tick's reference time (defaults to the clock)

        Returns:
            DaemonTickResult with per-schedule outcomes

        Raises:
            No exceptions are raised for storage, executor, or calculation
            failures; they are logged and captured in the result.
        """
        now = now or self._clock()
        tick_id = uuid4().hex
        started = time.monotonic()

        if not self._tick_lock.acquire(blocking=False):
            with log_context(tick_id=tick_id):
                logger.warning(
                    "Tick skipped: previous tick still in progress",
                    extra={"event": "daemon.tick.skipped", "reason": "lock_held"},
                )
            return DaemonTickResult(
                tick_id=tick_id, tick_started_at=now, tick_finished_at=self._clock(), skipped=True
            )

        try:
            with log_context(tick_id=tick_id):
                try:
                    schedules = self.storage.load_schedules()
                except PersistenceError as e:
                    logger.error(
                        f"Failed to load schedules: {e}",
                        extra={"event": "daemon.tick.load_failed", "error_type": type(e).__name__},
                    )
                    return DaemonTickResult(
                        tick_id=tick_id,
                        tick_started_at=now,
                        tick_finished_at=self._clock(),
                        load_error=str(e),
                        total_duration_seconds=time.monotonic() - started,
                    )

                due = [s for s in schedules if s.enabled and s.next_run <= now]

                logger.debug(
                    f"Checked {len(schedules)} schedules, {len(due)} due",
                    extra={
                        "event": "daemon.tick.started",
                        "schedule_count": len(schedules),
                        "due_count": len(due),
                    },
                )

                outcomes: List[ScheduleOutcome] = []
                for schedule in due:
                    outcomes.append(self._run_schedule(schedule, now))

                result = DaemonTickResult(
                    tick_id=tick_id,
                    tick_started_at=now,
                    tick_finished_at=self._clock(),
                    checked_count=len(schedules),
                    due_count=len(due),
                    outcomes=outcomes,
                    total_duration_seconds=time.monotonic() - started,
                )

                if due:
                    logger.info(
                        "Tick completed",
                        extra={
                            "event": "daemon.tick.completed",
                            "duration_ms": int(result.total_duration_seconds * 1000),
                            "due_count": result.due_count,
                            "executed_count": result.executed_count,
                            "failed_count": result.failed_count,
                            "had_errors": result.had_errors,
                        },
                    )

                return result
        finally:
            self._tick_lock.release()

    def _run_schedule(self, schedule: Schedule, now: datetime) -> ScheduleOutcome:
        """Execute one due schedule and persist its advanced next run."""
        outcome = ScheduleOutcome(schedule_id=schedule.id, schedule_name=schedule.name)
        started = time.monotonic()

        with log_context(schedule_id=schedule.id):
            logger.info(
                f"Executing scheduled scan: {schedule.name}",
                extra={"event": "daemon.schedule.executing", "due_at": schedule.next_run},
            )

            try:
                record = self.executor.execute_schedule(schedule)
                outcome.executed = True
                outcome.scan_id = record.scan_id
            except ExecutionError as e:
                outcome.error = str(e)
                logger.error(
                    f"Failed to execute schedule {schedule.name}: {e}",
                    extra={"event": "daemon.schedule.failed", "error_type": type(e).__name__},
                )
            except Exception as e:
                outcome.error = f"{type(e).__name__}: {e}"
                logger.exception(
                    f"Unexpected error executing schedule {schedule.name}",
                    extra={"event": "daemon.schedule.failed", "error_type": type(e).__name__},
                )

            # Advanced even when the executor failed
            self._advance(schedule, now, outcome)

        outcome.duration_seconds = time.monotonic() - started
        return outcome

    def _advance(self, schedule: Schedule, now: datetime, outcome: ScheduleOutcome) -> None:
        """Record the run on the stored copy, which may have been edited meanwhile."""
        try:
            updated = self.storage.record_run(
                schedule.id, now, lambda stored: self.calculator.calculate_next_run(stored, now)
            )
        except ScheduleNotFoundError:
            outcome.skipped_reason = "deleted"
            logger.info(
                f"Schedule {schedule.name} was deleted during execution",
                extra={"event": "daemon.schedule.vanished"},
            )
            return
        except (ScheduleValidationError, CalculationError, PersistenceError) as e:
            outcome.persist_error = str(e)
            logger.error(
                f"Failed to advance schedule {schedule.name}: {e}",
                extra={"event": "daemon.schedule.persist_failed", "error_type": type(e).__name__},
            )
            return

        if updated is None:
            outcome.skipped_reason = "disabled"
            logger.info(
                f"Schedule {schedule.name} was disabled during execution",
                extra={"event": "daemon.schedule.disabled_meanwhile"},
            )
            return

        outcome.persisted = True
        outcome.next_run = updated.next_run
        logger.info(
            f"Next run for {updated.name}: {updated.next_run}",
            extra={"event": "daemon.schedule.advanced", "next_run": updated.next_run},
        )

    def _tick(self) -> None:
        # Job target: no exception may escape into the scheduler thread
        try:
            self.poll_once()
        except Exception:
            logger.exception(
                "Unexpected error during tick", extra={"event": "daemon.tick.crashed"}
            )

    def start(self) -> None:
        """
        Start the scheduler and register the polling job.

        The first tick runs immediately; later ticks follow the interval.
        """
        trigger = IntervalTrigger(seconds=self.interval_seconds, timezone=timezone.utc)

        next_run = datetime.now(timezone.utc)
        self.scheduler.add_job(
            func=self._tick,
            trigger=trigger,
            id=JOB_ID,
            name="Scheduled scan poll",
            replace_existing=True,
            next_run_time=next_run,
        )

        self.scheduler.start()

        logger.info(
            f"Daemon started with interval: {self.interval_seconds} seconds",
            extra={
                "event": "daemon.started",
                "interval_seconds": self.interval_seconds,
                "storage_path": str(self.storage.file_path),
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Stop the scheduler. An in-flight execution is not cancelled.

        Args:
            wait: If True, wait for a running tick to complete before returning
        """
        logger.info(
            "Shutting down daemon",
            extra={"event": "daemon.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        self.shutdown_event.set()

        logger.info("Daemon shutdown complete", extra={"event": "daemon.stopped"})

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_tick_time(self) -> Optional[datetime]:
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def run_forever(self) -> None:
        """Start, then block until SIGINT/SIGTERM or ``shutdown`` is called.

        Must be called from the main thread (signal handlers).
        """

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "daemon.signal_received", "signal": signum},
            )
            self.shutdown(wait=False)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        self.start()

        try:
            self.shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info(
                "Keyboard interrupt received, shutting down",
                extra={"event": "daemon.keyboard_interrupt"},
            )
            self.shutdown(wait=False)
