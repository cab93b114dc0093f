"""Shared fixtures for the scan scheduler test suite."""

from datetime import datetime
from typing import Callable

import pytest

from scan_scheduler.domain.models import Pattern, ScanConfig, Schedule
from scan_scheduler.logging.context import clear_log_context
from scan_scheduler.persistence import JSONScheduleStorage

# A Monday evening
FIXED_NOW = datetime(2025, 3, 3, 20, 0, 0)

SCHEDULER_ENV_VARS = [
    "SCAN_SCHEDULER_HOME",
    "SCAN_SCHEDULER_STORAGE",
    "LOG_LEVEL",
    "BURP_API_HOST",
    "BURP_API_PORT",
    "BURP_API_KEY",
    "NO_COLOR",
]


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset scheduler environment variables and point the home dir at tmp_path."""
    for name in SCHEDULER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SCAN_SCHEDULER_HOME", str(tmp_path / "home"))
    return monkeypatch


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def make_schedule() -> Callable[..., Schedule]:
    """Factory for schedules; defaults describe a valid daily URL scan at 21:00."""

    def _make(
        schedule_id: str = "sched_00000001",
        name: str = "Nightly scan",
        schedule_type: str = "daily",
        time: str = "21:00",
        days=None,
        day_of_month=None,
        scan_type: str = "url",
        target: str = "https://example.com",
        parameters=None,
        created_at: datetime = FIXED_NOW,
        last_run=None,
        next_run=None,
        enabled: bool = True,
    ) -> Schedule:
        return Schedule(
            id=schedule_id,
            name=name,
            type=schedule_type,
            pattern=Pattern(time=time, days=days, day_of_month=day_of_month),
            scan_config=ScanConfig(
                scan_type=scan_type, target=target, parameters=parameters or {}
            ),
            created_at=created_at,
            last_run=last_run,
            next_run=next_run or datetime(2025, 3, 3, 21, 0),
            enabled=enabled,
        )

    return _make


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / "data" / "schedules.json"


@pytest.fixture
def storage(storage_path) -> JSONScheduleStorage:
    """Initialized storage in a temporary directory with a fixed clock."""
    store = JSONScheduleStorage(storage_path, clock=lambda: FIXED_NOW)
    store.initialize()
    return store
