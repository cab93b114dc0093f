"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check raw configuration for settings that are accepted but have no effect.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    if config_dict.get("pid_file"):
        warning_messages.append(
            "pid_file is set but background daemon mode is not available; "
            "run 'daemon --foreground' under a process supervisor"
        )

    max_scans = config_dict.get("max_concurrent_scans")
    if isinstance(max_scans, int) and max_scans > 1:
        warning_messages.append(
            f"max_concurrent_scans ({max_scans}) is ignored: due schedules run one at a time"
        )

    retry_attempts = config_dict.get("retry_attempts")
    if isinstance(retry_attempts, int) and retry_attempts > 0:
        warning_messages.append(
            "retry_attempts is ignored: a failed scan is not retried until its next occurrence"
        )

    executor = config_dict.get("executor", {})
    if isinstance(executor, dict) and executor.get("api_key") and executor.get("mode") != "burp":
        warning_messages.append("executor.api_key is set but executor.mode is not 'burp'")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
