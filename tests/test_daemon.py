"""Unit tests for the scheduler daemon.

Tests the SchedulerDaemon including:
- Due detection (enabled and next_run <= now)
- Advancing and persisting next_run after each execution
- Executor failures still advancing next_run
- Storage failures never aborting a tick
- Edits made while a scan launches surviving the run update
- APScheduler lifecycle (immediate first tick, no overlap, shutdown)
"""

import threading
import time
from datetime import datetime
from unittest.mock import Mock

import pytest

from scan_scheduler.daemon import SchedulerDaemon
from scan_scheduler.domain.models import ExecutionRecord
from scan_scheduler.executor import BurpRestExecutor, ExecutionError, ScheduleExecutor
from scan_scheduler.persistence import (
    JSONScheduleStorage,
    StorageCorruptedError,
    StorageWriteError,
)

TICK_TIME = datetime(2025, 3, 3, 21, 0, 30)


class RecordingExecutor(ScheduleExecutor):
    """Executor that records calls and can be told to fail for some schedules."""

    def __init__(self, fail_ids=()):
        super().__init__()
        self.fail_ids = set(fail_ids)
        self.executed = []

    def _launch(self, schedule):
        self.executed.append(schedule.id)
        if schedule.id in self.fail_ids:
            raise ExecutionError("scanner unavailable")
        return f"scan-{len(self.executed)}", None


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def daemon(storage, executor):
    return SchedulerDaemon(storage=storage, executor=executor, interval_seconds=60)


class TestPollOnce:
    """Tests for a single tick."""

    def test_executes_due_schedule_and_advances(self, daemon, storage, executor, make_schedule):
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))

        result = daemon.poll_once(TICK_TIME)

        assert executor.executed == ["sched_00000001"]
        assert result.due_count == 1
        assert result.executed_count == 1
        assert not result.had_errors

        stored = storage.get_schedule_by_id("sched_00000001")
        assert stored.last_run == TICK_TIME
        assert stored.next_run == datetime(2025, 3, 4, 21, 0)

    def test_outcome_carries_scan_id_and_next_run(self, daemon, storage, make_schedule):
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))

        outcome = daemon.poll_once(TICK_TIME).outcomes[0]

        assert outcome.executed is True
        assert outcome.persisted is True
        assert outcome.scan_id == "scan-1"
        assert outcome.next_run == datetime(2025, 3, 4, 21, 0)

    def test_schedule_due_exactly_now(self, daemon, storage, executor, make_schedule):
        storage.save_schedule(make_schedule(next_run=TICK_TIME))

        daemon.poll_once(TICK_TIME)

        assert executor.executed == ["sched_00000001"]

    def test_future_schedule_is_not_executed(self, daemon, storage, executor, make_schedule):
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 1)))

        result = daemon.poll_once(TICK_TIME)

        assert executor.executed == []
        assert result.checked_count == 1
        assert result.due_count == 0

    def test_disabled_schedule_is_not_executed(self, daemon, storage, executor, make_schedule):
        storage.save_schedule(
            make_schedule(next_run=datetime(2025, 3, 3, 21, 0), enabled=False)
        )

        daemon.poll_once(TICK_TIME)

        assert executor.executed == []
        assert storage.get_schedule_by_id("sched_00000001").last_run is None

    def test_occurrence_fires_once(self, daemon, storage, executor, make_schedule):
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))

        daemon.poll_once(TICK_TIME)
        second = daemon.poll_once(datetime(2025, 3, 3, 21, 1, 30))

        assert executor.executed == ["sched_00000001"]
        assert second.due_count == 0

    def test_missed_occurrences_fire_once(self, daemon, storage, executor, make_schedule):
        """A schedule overdue by several days runs once and moves to the next future slot."""
        storage.save_schedule(make_schedule(next_run=datetime(2025, 2, 27, 21, 0)))

        daemon.poll_once(TICK_TIME)

        assert executor.executed == ["sched_00000001"]
        assert storage.get_schedule_by_id("sched_00000001").next_run == datetime(2025, 3, 4, 21, 0)

    def test_executor_failure_still_advances(self, storage, make_schedule):
        executor = RecordingExecutor(fail_ids={"sched_00000001"})
        daemon = SchedulerDaemon(storage=storage, executor=executor)
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))

        result = daemon.poll_once(TICK_TIME)

        outcome = result.outcomes[0]
        assert outcome.executed is False
        assert outcome.error == "scanner unavailable"
        assert outcome.persisted is True
        assert result.had_errors
        assert result.failed_count == 1

        stored = storage.get_schedule_by_id("sched_00000001")
        assert stored.last_run == TICK_TIME
        assert stored.next_run == datetime(2025, 3, 4, 21, 0)

    def test_failure_does_not_stop_other_schedules(self, storage, make_schedule):
        executor = RecordingExecutor(fail_ids={"sched_00000001"})
        daemon = SchedulerDaemon(storage=storage, executor=executor)
        storage.save_schedule(
            make_schedule(schedule_id="sched_00000001", name="a", next_run=datetime(2025, 3, 3, 21, 0))
        )
        storage.save_schedule(
            make_schedule(schedule_id="sched_00000002", name="b", next_run=datetime(2025, 3, 3, 21, 0))
        )

        result = daemon.poll_once(TICK_TIME)

        assert executor.executed == ["sched_00000001", "sched_00000002"]
        assert [o.executed for o in result.outcomes] == [False, True]

    def test_failed_execution_is_recorded_in_history(self, storage, make_schedule):
        executor = RecordingExecutor(fail_ids={"sched_00000001"})
        daemon = SchedulerDaemon(storage=storage, executor=executor)
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))

        daemon.poll_once(TICK_TIME)

        history = executor.get_execution_history("sched_00000001")
        assert len(history) == 1
        assert history[0].success is False
        assert history[0].error == "scanner unavailable"

    def test_unexpected_executor_error_still_advances(self, storage, make_schedule):
        class CrashingExecutor(RecordingExecutor):
            def _launch(self, schedule):
                self.executed.append(schedule.id)
                if schedule.id == "sched_00000001":
                    raise RuntimeError("launcher crashed")
                return "scan-ok", None

        executor = CrashingExecutor()
        daemon = SchedulerDaemon(storage=storage, executor=executor)
        storage.save_schedule(
            make_schedule(schedule_id="sched_00000001", name="a", next_run=datetime(2025, 3, 3, 21, 0))
        )
        storage.save_schedule(
            make_schedule(schedule_id="sched_00000002", name="b", next_run=datetime(2025, 3, 3, 21, 0))
        )

        result = daemon.poll_once(TICK_TIME)

        assert executor.executed == ["sched_00000001", "sched_00000002"]
        crashed, ran = result.outcomes
        assert crashed.executed is False
        assert crashed.error == "RuntimeError: launcher crashed"
        assert crashed.persisted is True
        assert ran.executed is True
        assert result.had_errors

        for schedule_id in ("sched_00000001", "sched_00000002"):
            stored = storage.get_schedule_by_id(schedule_id)
            assert stored.last_run == TICK_TIME
            assert stored.next_run == datetime(2025, 3, 4, 21, 0)

    def test_unreadable_url_list_still_advances(self, storage, make_schedule, tmp_path):
        url_list = tmp_path / "urls.txt"
        url_list.write_bytes(b"\xff\xfehttps://a.example.com\n")
        session = Mock(headers={})
        executor = BurpRestExecutor(timeout=10, session=session)
        daemon = SchedulerDaemon(storage=storage, executor=executor)
        storage.save_schedule(
            make_schedule(scan_type="url_list", target=str(url_list), next_run=datetime(2025, 3, 3, 21, 0))
        )

        outcome = daemon.poll_once(TICK_TIME).outcomes[0]

        assert outcome.executed is False
        assert "not valid UTF-8" in outcome.error
        session.post.assert_not_called()
        assert storage.get_schedule_by_id("sched_00000001").next_run == datetime(2025, 3, 4, 21, 0)

    def test_load_failure_yields_errored_tick(self, executor):
        storage = Mock(spec=JSONScheduleStorage)
        storage.load_schedules.side_effect = StorageCorruptedError("bad json")
        daemon = SchedulerDaemon(storage=storage, executor=executor)

        result = daemon.poll_once(TICK_TIME)

        assert result.load_error == "bad json"
        assert result.outcomes == []
        assert result.had_errors
        assert executor.executed == []

    def test_persist_failure_is_captured(self, executor, make_schedule):
        storage = Mock(spec=JSONScheduleStorage)
        storage.load_schedules.return_value = [
            make_schedule(schedule_id="sched_00000001", name="a", next_run=datetime(2025, 3, 3, 21, 0)),
            make_schedule(schedule_id="sched_00000002", name="b", next_run=datetime(2025, 3, 3, 21, 0)),
        ]
        storage.record_run.side_effect = [
            StorageWriteError("disk full"),
            make_schedule(schedule_id="sched_00000002", name="b", next_run=datetime(2025, 3, 4, 21, 0)),
        ]
        daemon = SchedulerDaemon(storage=storage, executor=executor)

        result = daemon.poll_once(TICK_TIME)

        assert [o.persisted for o in result.outcomes] == [False, True]
        assert result.outcomes[0].persist_error == "disk full"
        assert result.outcomes[1].next_run == datetime(2025, 3, 4, 21, 0)
        assert storage.record_run.call_count == 2

    def test_overlapping_tick_is_skipped(self, daemon):
        daemon._tick_lock.acquire()
        try:
            result = daemon.poll_once(TICK_TIME)
        finally:
            daemon._tick_lock.release()

        assert result.skipped

    def test_uses_clock_when_now_is_omitted(self, storage, executor, make_schedule):
        daemon = SchedulerDaemon(storage=storage, executor=executor, clock=lambda: TICK_TIME)
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))

        result = daemon.poll_once()

        assert result.tick_started_at == TICK_TIME
        assert executor.executed == ["sched_00000001"]


class EditingExecutor(RecordingExecutor):
    """Executor that edits the stored schedule while its scan is launching."""

    def __init__(self, edit):
        super().__init__()
        self.edit = edit

    def _launch(self, schedule):
        self.edit(schedule.id)
        return super()._launch(schedule)


class TestEditsDuringExecution:
    """Tests that changes made while a scan launches are not overwritten."""

    def _tick_with_edit(self, storage, make_schedule, edit):
        storage.save_schedule(make_schedule(next_run=datetime(2025, 3, 3, 21, 0)))
        daemon = SchedulerDaemon(storage=storage, executor=EditingExecutor(edit))
        return daemon.poll_once(TICK_TIME)

    def test_disable_and_rename_survive(self, storage, make_schedule):
        def disable_and_rename(schedule_id):
            stored = storage.get_schedule_by_id(schedule_id)
            stored.enabled = False
            stored.name = "renamed"
            storage.update_schedule(stored)

        result = self._tick_with_edit(storage, make_schedule, disable_and_rename)

        outcome = result.outcomes[0]
        assert outcome.executed is True
        assert outcome.persisted is False
        assert outcome.skipped_reason == "disabled"
        assert not result.had_errors

        stored = storage.get_schedule_by_id("sched_00000001")
        assert stored.enabled is False
        assert stored.name == "renamed"
        assert stored.last_run is None

    def test_next_run_follows_edited_pattern(self, storage, make_schedule):
        def move_to_evening(schedule_id):
            stored = storage.get_schedule_by_id(schedule_id)
            stored.name = "renamed"
            stored.pattern.time = "22:30"
            storage.update_schedule(stored)

        result = self._tick_with_edit(storage, make_schedule, move_to_evening)

        assert result.outcomes[0].next_run == datetime(2025, 3, 3, 22, 30)
        stored = storage.get_schedule_by_id("sched_00000001")
        assert stored.name == "renamed"
        assert stored.pattern.time == "22:30"
        assert stored.last_run == TICK_TIME
        assert stored.next_run == datetime(2025, 3, 3, 22, 30)

    def test_deleted_schedule_is_not_recreated(self, storage, make_schedule):
        result = self._tick_with_edit(storage, make_schedule, storage.delete_schedule)

        outcome = result.outcomes[0]
        assert outcome.executed is True
        assert outcome.skipped_reason == "deleted"
        assert not result.had_errors
        assert not storage.schedule_exists("sched_00000001")


class TestDaemonLifecycle:
    """Tests for the APScheduler-backed loop."""

    def test_job_defaults_prevent_overlap(self, daemon):
        assert daemon.scheduler._job_defaults["max_instances"] == 1
        assert daemon.scheduler._job_defaults["coalesce"] is True

    def test_start_runs_first_tick_immediately(self, storage):
        ticked = threading.Event()
        executor = RecordingExecutor()
        daemon = SchedulerDaemon(storage=storage, executor=executor, interval_seconds=300)
        original = daemon.poll_once

        def poll_and_signal(now=None):
            result = original(now)
            ticked.set()
            return result

        daemon.poll_once = poll_and_signal
        daemon.start()
        try:
            assert ticked.wait(timeout=5)
            assert daemon.is_running()
            assert daemon.get_next_tick_time() is not None
        finally:
            daemon.shutdown(wait=True)

    def test_shutdown_sets_event(self, storage, executor):
        event = threading.Event()
        daemon = SchedulerDaemon(
            storage=storage, executor=executor, interval_seconds=300, shutdown_event=event
        )

        daemon.start()
        time.sleep(0.1)
        daemon.shutdown(wait=True)

        assert event.is_set()
        assert not daemon.is_running()

    def test_tick_exception_does_not_escape(self, daemon):
        daemon.poll_once = Mock(side_effect=RuntimeError("boom"))

        daemon._tick()

        daemon.poll_once.assert_called_once()

    def test_next_tick_time_before_start(self, daemon):
        assert daemon.get_next_tick_time() is None
