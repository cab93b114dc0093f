"""Filesystem path helpers."""

import os
from pathlib import Path
from typing import Union

DEFAULT_HOME_DIRNAME = ".scan-scheduler"


def expand_path(path: Union[str, Path]) -> Path:
    """Expand ``~`` and environment variables in a path."""
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def get_config_directory() -> Path:
    """Per-user configuration directory.

    ``SCAN_SCHEDULER_HOME`` overrides the default ``~/.scan-scheduler``.
    The directory is not created here; storage creates it on initialise.
    """
    override = os.getenv("SCAN_SCHEDULER_HOME")
    if override:
        return expand_path(override)
    return Path.home() / DEFAULT_HOME_DIRNAME


def ensure_parent_directory(path: Path) -> None:
    """Create the parent directory of ``path`` if it is missing."""
    path.parent.mkdir(parents=True, exist_ok=True)
