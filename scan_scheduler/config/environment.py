"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvironmentConfig:
    """Environment variable configuration holder.

    Every field is optional; ``None`` means "not set, keep the file value".
    """

    def __init__(
        self,
        storage_path: Optional[str] = None,
        log_level: Optional[str] = None,
        burp_host: Optional[str] = None,
        burp_port: Optional[int] = None,
        burp_api_key: Optional[str] = None,
        no_color: bool = False,
    ):
        self.storage_path = storage_path
        self.log_level = log_level
        self.burp_host = burp_host
        self.burp_port = burp_port
        self.burp_api_key = burp_api_key
        self.no_color = no_color


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Optional environment variables:
    - SCAN_SCHEDULER_STORAGE: Schedule storage file (overrides storage_path)
    - LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - BURP_API_HOST / BURP_API_PORT / BURP_API_KEY: Burp REST API endpoint
    - NO_COLOR: Any non-empty value disables colored output

    ``SCAN_SCHEDULER_HOME`` is read directly when default paths are resolved.

    Raises:
        ConfigurationError: If a variable has an invalid value
    """
    errors = []

    log_level = os.getenv("LOG_LEVEL") or None
    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    burp_port = None
    burp_port_str = os.getenv("BURP_API_PORT")
    if burp_port_str:
        try:
            burp_port = int(burp_port_str)
            if not 1 <= burp_port <= 65535:
                errors.append(f"Invalid BURP_API_PORT: {burp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid BURP_API_PORT: '{burp_port_str}'. Must be a valid integer.")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Check the values in your shell or .env file",
                "Unset variables you do not need; all of them are optional",
            ],
        )

    return EnvironmentConfig(
        storage_path=os.getenv("SCAN_SCHEDULER_STORAGE") or None,
        log_level=log_level.upper() if log_level else None,
        burp_host=os.getenv("BURP_API_HOST") or None,
        burp_port=burp_port,
        burp_api_key=os.getenv("BURP_API_KEY") or None,
        no_color=bool(os.getenv("NO_COLOR")),
    )
