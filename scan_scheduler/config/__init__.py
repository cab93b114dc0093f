"""Configuration management for the scan scheduler."""

from .duration import DurationParseError, parse_duration, validate_duration_range
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import apply_overrides, load_config
from .models import (
    ExecutorConfig,
    ExecutorMode,
    LogFormat,
    LoggingConfig,
    LogLevel,
    OutputConfig,
    SchedulerConfig,
)

__all__ = [
    # Main loader functions
    "load_config",
    "apply_overrides",
    "load_environment_config",
    # Configuration models
    "SchedulerConfig",
    "ExecutorConfig",
    "LoggingConfig",
    "OutputConfig",
    "EnvironmentConfig",
    # Enums
    "ExecutorMode",
    "LogLevel",
    "LogFormat",
    # Durations
    "parse_duration",
    "validate_duration_range",
    "DurationParseError",
    # Exceptions
    "ConfigurationError",
]
