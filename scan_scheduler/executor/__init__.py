"""Schedule executors.

Public API:
    - ScheduleExecutor: abstract contract used by the daemon
    - DryRunExecutor: logs the equivalent scanner command, runs nothing
    - BurpRestExecutor: starts scans through the Burp Suite REST API
    - build_scan_command(schedule) -> List[str]

    # Exceptions
    - ExecutionError: Base exception for executor failures
    - UnsupportedScanError: Scan type not supported by the executor
    - ScanServiceError: Scanning service rejected the request or was unreachable
"""

from .base import ScheduleExecutor
from .burp import BurpRestExecutor, build_api_base, extract_scan_id, read_url_list
from .dry_run import DryRunExecutor, build_scan_command
from .exceptions import ExecutionError, ScanServiceError, UnsupportedScanError

__all__ = [
    "ScheduleExecutor",
    "DryRunExecutor",
    "BurpRestExecutor",
    "build_scan_command",
    "build_api_base",
    "extract_scan_id",
    "read_url_list",
    "ExecutionError",
    "UnsupportedScanError",
    "ScanServiceError",
]
