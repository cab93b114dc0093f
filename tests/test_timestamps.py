"""Unit tests for timestamp and path utilities."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from scan_scheduler.utils.paths import ensure_parent_directory, expand_path, get_config_directory
from scan_scheduler.utils.timestamps import (
    backup_suffix,
    ensure_local,
    format_duration,
    format_timestamp,
    local_now,
    parse_time_of_day,
)


class TestLocalNow:
    """Tests for local_now function."""

    def test_naive_and_whole_seconds(self):
        now = local_now()

        assert now.tzinfo is None
        assert now.microsecond == 0

    def test_is_recent(self):
        before = datetime.now().replace(microsecond=0)
        now = local_now()
        after = datetime.now()

        assert before <= now <= after


class TestEnsureLocal:
    """Tests for ensure_local function."""

    def test_none(self):
        assert ensure_local(None) is None

    def test_naive_is_unchanged(self):
        dt = datetime(2025, 3, 3, 21, 0)

        assert ensure_local(dt) is dt

    def test_aware_is_converted_and_stripped(self):
        aware = datetime(2025, 3, 3, 21, 0, tzinfo=timezone(timedelta(hours=5)))

        result = ensure_local(aware)

        assert result.tzinfo is None
        assert result == aware.astimezone().replace(tzinfo=None)


class TestParseTimeOfDay:
    """Tests for parse_time_of_day function."""

    def test_valid(self):
        assert parse_time_of_day("00:00") == (0, 0)
        assert parse_time_of_day("09:05") == (9, 5)
        assert parse_time_of_day("23:59") == (23, 59)

    @pytest.mark.parametrize(
        "value,message",
        [
            ("0900", "HH:MM format"),
            ("09:00:00", "HH:MM format"),
            ("", "HH:MM format"),
            ("9a:00", "invalid hour"),
            ("09: 5", "invalid minute"),
            ("24:00", "hour must be between"),
            ("12:75", "minute must be between"),
        ],
    )
    def test_invalid(self, value, message):
        with pytest.raises(ValueError, match=message):
            parse_time_of_day(value)


class TestFormatting:
    """Tests for display formatting helpers."""

    def test_format_timestamp(self):
        assert format_timestamp(datetime(2025, 3, 3, 21, 0, 5)) == "2025-03-03 21:00:05"

    def test_format_timestamp_default(self):
        assert format_timestamp(None) == "Never"
        assert format_timestamp(None, default="-") == "-"

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=-5), "0s"),
            (timedelta(seconds=45), "45s"),
            (timedelta(minutes=5, seconds=30), "5m"),
            (timedelta(minutes=90), "1h 30m"),
            (timedelta(hours=26, minutes=5), "1d 2h"),
        ],
    )
    def test_format_duration(self, delta, expected):
        assert format_duration(delta) == expected

    def test_backup_suffix(self):
        assert backup_suffix(datetime(2025, 3, 3, 21, 0, 5)) == "20250303_210005"


class TestPaths:
    """Tests for filesystem path helpers."""

    def test_config_directory_override(self, clean_env, tmp_path):
        assert get_config_directory() == tmp_path / "home"

    def test_config_directory_default(self, clean_env):
        clean_env.delenv("SCAN_SCHEDULER_HOME")

        assert get_config_directory() == Path.home() / ".scan-scheduler"

    def test_expand_path(self, clean_env, tmp_path):
        clean_env.setenv("SCAN_DATA", str(tmp_path))

        assert expand_path("$SCAN_DATA/schedules.json") == tmp_path / "schedules.json"
        assert expand_path("~/x") == Path.home() / "x"

    def test_ensure_parent_directory(self, tmp_path):
        target = tmp_path / "a" / "b" / "schedules.json"

        ensure_parent_directory(target)

        assert target.parent.is_dir()
        assert not target.exists()
