"""Configuration schema models using Pydantic."""

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from scan_scheduler.utils.paths import expand_path, get_config_directory

from .duration import DurationParseError, parse_duration, validate_duration_range

MIN_CHECK_INTERVAL_SECONDS = 60
MAX_CHECK_INTERVAL_SECONDS = 3600


class ExecutorMode(str, Enum):
    """How due schedules are executed."""

    DRY_RUN = "dry-run"
    BURP = "burp"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class ExecutorConfig(BaseModel):
    """Scan executor settings."""

    mode: ExecutorMode = Field(ExecutorMode.DRY_RUN, description="dry-run or burp")
    host: str = Field("127.0.0.1", min_length=1, description="Burp REST API host")
    port: int = Field(1337, ge=1, le=65535, description="Burp REST API port")
    api_key: Optional[str] = Field(None, description="Burp REST API key")
    request_timeout: int = Field(
        30, ge=5, le=300, description="HTTP request timeout in seconds"
    )

    @field_validator("host")
    @classmethod
    def strip_host(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("host cannot be empty")
        return stripped

    model_config = {"use_enum_values": True}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class OutputConfig(BaseModel):
    """Console output settings."""

    color: bool = Field(True, description="Colorize console output")


class SchedulerConfig(BaseModel):
    """Root configuration object for the scan scheduler.

    Paths default to files inside the configuration directory
    (``~/.scan-scheduler`` or ``$SCAN_SCHEDULER_HOME``).
    """

    storage_path: Optional[str] = Field(None, description="Schedule storage file")
    log_path: Optional[str] = Field(None, description="Daemon log file")
    pid_file: Optional[str] = Field(
        None, description="Daemon PID file (reserved; background mode is not available)"
    )
    check_interval: str = Field("1m", description="How often the daemon polls for due schedules")
    due_soon_window: str = Field("24h", description="Default horizon for 'due' listings")
    max_concurrent_scans: int = Field(
        3, ge=1, le=10, description="Reserved; due schedules run sequentially"
    )
    retry_attempts: int = Field(3, ge=0, le=10, description="Reserved; failures are not retried")
    retry_interval: str = Field("5m", description="Reserved; failures are not retried")
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    # Computed fields
    check_interval_seconds: Optional[int] = None
    due_soon_window_seconds: Optional[int] = None

    @field_validator("check_interval")
    @classmethod
    def validate_check_interval(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            validate_duration_range(
                seconds,
                min_seconds=MIN_CHECK_INTERVAL_SECONDS,
                max_seconds=MAX_CHECK_INTERVAL_SECONDS,
            )
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @field_validator("due_soon_window", "retry_interval")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        try:
            parse_duration(v)
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def compute_durations(self):
        """Fill in the *_seconds fields from the validated duration strings."""
        self.check_interval_seconds = parse_duration(self.check_interval)
        self.due_soon_window_seconds = parse_duration(self.due_soon_window)
        return self

    def get_storage_path(self) -> Path:
        if self.storage_path:
            return expand_path(self.storage_path)
        return get_config_directory() / "schedules.json"

    def get_log_path(self) -> Path:
        if self.log_path:
            return expand_path(self.log_path)
        return get_config_directory() / "scheduler.log"

    def get_pid_path(self) -> Path:
        if self.pid_file:
            return expand_path(self.pid_file)
        return get_config_directory() / "scheduler.pid"
