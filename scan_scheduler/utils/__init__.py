"""Utility functions for time handling, identifiers, and paths."""

from .ids import generate_schedule_id
from .paths import ensure_parent_directory, expand_path, get_config_directory
from .timestamps import (
    backup_suffix,
    ensure_local,
    format_duration,
    format_timestamp,
    local_now,
    parse_time_of_day,
)

__all__ = [
    # Identifiers
    "generate_schedule_id",
    # Paths
    "expand_path",
    "get_config_directory",
    "ensure_parent_directory",
    # Timestamps
    "local_now",
    "ensure_local",
    "parse_time_of_day",
    "format_timestamp",
    "format_duration",
    "backup_suffix",
]
