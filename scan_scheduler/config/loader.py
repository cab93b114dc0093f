"""Configuration loader for the scan scheduler."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from scan_scheduler.utils.paths import get_config_directory

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import SchedulerConfig
from .validators import check_for_warnings, emit_warnings

CONFIG_FILENAME = "config.yaml"


def load_config(config_path: Optional[Path] = None) -> Tuple[SchedulerConfig, EnvironmentConfig]:
    """
    Load and validate configuration from YAML and environment variables.

    The configuration file is optional. Without ``config_path`` the default
    ``<config dir>/config.yaml`` is read if it exists; otherwise built-in
    defaults apply. An explicit ``config_path`` must exist.

    Args:
        config_path: Optional path to a configuration file

    Returns:
        Tuple of (SchedulerConfig, EnvironmentConfig); environment overrides
        are not applied yet, see ``apply_overrides``

    Raises:
        ConfigurationError: If the file or environment is invalid
    """
    config_dict = _read_config_file(_find_config_file(config_path))

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        config = SchedulerConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            if error["type"] == "missing":
                errors.append(f"Missing required field: {field_path}")
            else:
                errors.append(f"{field_path or 'config'}: {error['msg']}")

        raise ConfigurationError(
            "Configuration validation failed",
            errors=errors,
            suggestions=[
                "Durations use units like '1m', '1h30m', or ISO-8601 like 'PT1M'",
                "check_interval must be between 1 minute and 1 hour",
                "executor.mode must be 'dry-run' or 'burp'",
            ],
        ) from e

    return config, load_environment_config()


def apply_overrides(
    config: SchedulerConfig,
    env_config: EnvironmentConfig,
    log_level: Optional[str] = None,
    no_color: bool = False,
) -> SchedulerConfig:
    """
    Apply environment and command-line overrides in place.

    Priority: command line > environment > configuration file.

    Returns:
        The same config object, for chaining
    """
    if env_config.storage_path:
        config.storage_path = env_config.storage_path

    if log_level:
        config.logging.level = log_level.upper()
    elif env_config.log_level:
        config.logging.level = env_config.log_level

    if env_config.burp_host:
        config.executor.host = env_config.burp_host
    if env_config.burp_port:
        config.executor.port = env_config.burp_port
    if env_config.burp_api_key:
        config.executor.api_key = env_config.burp_api_key

    if no_color or env_config.no_color:
        config.output.color = False

    return config


def _find_config_file(config_path: Optional[Path]) -> Optional[Path]:
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[
                    f"Ensure {config_path} exists",
                    "Omit --config to use built-in defaults",
                ],
            )
        return config_path

    default = get_config_directory() / CONFIG_FILENAME
    return default if default.exists() else None


def _read_config_file(config_file: Optional[Path]) -> Dict[str, Any]:
    if config_file is None:
        return {}

    try:
        with open(config_file, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[f"Ensure {config_file} is readable"],
        ) from e

    if config_dict is None:
        return {}

    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration file {config_file} must contain a mapping of settings",
        )

    return config_dict
