"""Tests for logging configuration and formatters."""

import json
import logging
import sys
from datetime import datetime

import pytest

from scan_scheduler.logging import get_logger
from scan_scheduler.logging.config import (
    SERVICE_NAME,
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from scan_scheduler.logging.context import log_context


@pytest.fixture
def logger():
    """Create a test logger with no handlers attached."""
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()

    yield test_logger

    test_logger.handlers.clear()


@pytest.fixture
def restore_root_logger():
    """Put the root logger's handlers and level back after configure_logging."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level

    yield root_logger

    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def make_record(logger, message="Test message", extra=None):
    return logger.makeRecord("test", logging.INFO, "test.py", 1, message, (), None, extra=extra)


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_mandatory_fields(self, logger):
        log_obj = json.loads(JSONFormatter().format(make_record(logger)))

        assert log_obj["level"] == "INFO"
        assert log_obj["message"] == "Test message"
        assert "name" not in log_obj

    def test_timestamp_is_utc_iso8601_with_millis(self, logger):
        timestamp = json.loads(JSONFormatter().format(make_record(logger)))["timestamp"]

        # e.g. 2025-03-03T20:00:00.123Z
        assert timestamp.endswith("Z")
        assert timestamp[10] == "T"
        assert len(timestamp) == 24

    def test_extra_fields(self, logger):
        record = make_record(
            logger,
            extra={
                "event": "daemon.tick.completed",
                "due_count": 2,
                "had_errors": False,
                "next_run": datetime(2025, 3, 4, 21, 0),
            },
        )

        log_obj = json.loads(JSONFormatter().format(record))

        assert log_obj["event"] == "daemon.tick.completed"
        assert log_obj["due_count"] == 2
        assert log_obj["had_errors"] is False
        assert log_obj["next_run"] == "2025-03-04T21:00:00"

    def test_exception_info(self, logger):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logger.makeRecord(
                "test", logging.ERROR, "test.py", 1, "failed", (), sys.exc_info()
            )

        log_obj = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in log_obj["exc_info"]


class TestKeyValueFormatter:
    """Tests for KeyValueFormatter."""

    def test_format_with_extras(self, logger):
        formatter = KeyValueFormatter("[%(levelname)s] %(name)s: %(message)s")
        record = make_record(
            logger,
            message="Executed schedule",
            extra={
                "event": "executor.schedule.executed",
                "schedule_name": "Nightly scan",
                "scan_id": None,
                "success": True,
            },
        )

        output = formatter.format(record)

        assert output.startswith("[INFO] test: Executed schedule")
        assert "event=executor.schedule.executed" in output
        assert 'schedule_name="Nightly scan"' in output
        assert "scan_id=null" in output
        assert "success=true" in output

    def test_service_metadata_is_omitted(self, logger):
        formatter = KeyValueFormatter("%(message)s")
        record = make_record(logger)
        ContextualFilter().filter(record)

        assert formatter.format(record) == "Test message"


class TestContextualFilter:
    """Tests for ContextualFilter."""

    def test_adds_static_fields(self, logger):
        record = make_record(logger)

        assert ContextualFilter(service="svc", environment="test").filter(record)
        assert record.service == "svc"
        assert record.environment == "test"

    def test_adds_context_fields_without_overriding_extras(self, logger):
        with log_context(tick_id="t-1", schedule_id="from-context"):
            record = make_record(logger, extra={"schedule_id": "explicit"})
            ContextualFilter().filter(record)

        assert record.tick_id == "t-1"
        assert record.schedule_id == "explicit"
        assert record.service == SERVICE_NAME


class TestGetLogger:
    """Tests for component-tagged loggers."""

    def test_plain_logger_without_component(self):
        assert isinstance(get_logger("scan_scheduler.test"), logging.Logger)

    def test_component_is_attached(self, caplog):
        adapter = get_logger("scan_scheduler.test", component="daemon")

        with caplog.at_level(logging.INFO, logger="scan_scheduler.test"):
            adapter.info("Tick started", extra={"event": "daemon.tick.started"})

        record = caplog.records[-1]
        assert record.component == "daemon"
        assert record.event == "daemon.tick.started"

    def test_call_extra_wins_over_component(self, caplog):
        adapter = get_logger("scan_scheduler.test", component="daemon")

        with caplog.at_level(logging.INFO, logger="scan_scheduler.test"):
            adapter.info("x", extra={"component": "override"})

        assert caplog.records[-1].component == "override"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="LOUD")

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid log format"):
            configure_logging(format_type="xml")

    def test_json_format(self, restore_root_logger):
        configure_logging(level="DEBUG", format_type="json", environment="test")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_key_value_format(self, restore_root_logger):
        configure_logging(level="warning")

        assert restore_root_logger.level == logging.WARNING
        assert isinstance(restore_root_logger.handlers[0].formatter, KeyValueFormatter)

    def test_log_file_receives_records(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "scheduler.log"

        configure_logging(level="INFO", format_type="json", log_file=log_file)
        logging.getLogger("scan_scheduler.test").info(
            "Daemon started", extra={"event": "daemon.started"}
        )
        for handler in restore_root_logger.handlers:
            handler.flush()

        lines = log_file.read_text().splitlines()
        assert len(restore_root_logger.handlers) == 2
        assert json.loads(lines[-1])["event"] == "daemon.started"
