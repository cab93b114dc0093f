"""Executor that launches scans through the Burp Suite REST API.

Only the scan-creation call is made: ``POST /v0.1/scan`` with the target
URLs. Burp answers ``201 Created`` with the new scan's location in the
``Location`` header; the last path segment of that header is the scan ID.
Polling the scan and exporting results are left to the scanner tooling.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from scan_scheduler.domain.models import ScanType, Schedule
from scan_scheduler.logging import get_logger

from .base import LaunchResult, ScheduleExecutor
from .exceptions import ExecutionError, ScanServiceError, UnsupportedScanError

logger = get_logger(__name__, component="executor")

API_VERSION = "v0.1"


def build_api_base(host: str, port: int, api_key: Optional[str] = None) -> str:
    """Base URL of the REST API; the API key, when set, is a path segment.

    Example:
        >>> build_api_base("127.0.0.1", 1337)
        'http://127.0.0.1:1337/v0.1'
        >>> build_api_base("127.0.0.1", 1337, "s3cr3t")
        'http://127.0.0.1:1337/s3cr3t/v0.1'
    """
    if api_key:
        return f"http://{host}:{port}/{api_key}/{API_VERSION}"
    return f"http://{host}:{port}/{API_VERSION}"


def read_url_list(path: str) -> List[str]:
    """URLs from a file, one per line; blank lines and ``#`` comments are skipped.

    Raises:
        ExecutionError: If the file cannot be read or holds no URLs
    """
    try:
        lines = Path(path).expanduser().read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ExecutionError(f"cannot read URL list {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ExecutionError(f"URL list {path} is not valid UTF-8: {e}") from e

    urls = [line.strip() for line in lines]
    urls = [url for url in urls if url and not url.startswith("#")]
    if not urls:
        raise ExecutionError(f"URL list {path} contains no URLs")
    return urls


def extract_scan_id(location: str) -> str:
    """Last path segment of a Location header (``/v0.1/scan/7`` -> ``7``)."""
    return location.rstrip("/").split("/")[-1]


class BurpRestExecutor(ScheduleExecutor):
    """Starts scans on a running Burp Suite instance.

    Attributes:
        base_url: REST API base, including the API key segment when set
        timeout: HTTP request timeout in seconds
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 1337,
        api_key: Optional[str] = None,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        """
        Args:
            host: Burp REST API host
            port: Burp REST API port
            api_key: Optional API key
            timeout: HTTP request timeout in seconds (range 5-300)
            session: Optional requests session (mainly for tests)

        Raises:
            ValueError: If timeout is outside the valid range
        """
        super().__init__()
        if not 5 <= timeout <= 300:
            raise ValueError(f"Timeout must be between 5 and 300 seconds, got: {timeout}")

        self.base_url = build_api_base(host, port, api_key)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    def build_scan_request(self, schedule: Schedule) -> Dict[str, Any]:
        """
        JSON body of the scan-creation request.

        Raises:
            UnsupportedScanError: For Nmap targets
            ExecutionError: If a URL list cannot be read
        """
        config = schedule.scan_config
        scan_type = ScanType(config.scan_type)

        if scan_type == ScanType.NMAP:
            raise UnsupportedScanError(
                "Nmap targets are not supported by the REST executor", schedule_id=schedule.id
            )

        if scan_type == ScanType.URL_LIST:
            urls = read_url_list(config.target)
        else:
            urls = [config.target]

        body: Dict[str, Any] = {"urls": urls}

        scan_name = config.parameters.get("scan_name")
        if scan_name:
            body["name"] = scan_name

        burp_config = config.parameters.get("burp_config")
        if burp_config:
            body["scan_configurations"] = [{"type": "NamedConfiguration", "name": burp_config}]

        return body

    def _launch(self, schedule: Schedule) -> LaunchResult:
        body = self.build_scan_request(schedule)
        url = f"{self.base_url}/scan"

        logger.debug(
            f"HTTP POST request to {url}",
            extra={
                "event": "executor.burp.request",
                "schedule_id": schedule.id,
                "url_count": len(body["urls"]),
                "timeout": self.timeout,
            },
        )

        try:
            response = self._session.post(url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to Burp timed out after {self.timeout} seconds",
                extra={"event": "executor.burp.timeout", "schedule_id": schedule.id},
            )
            raise ScanServiceError(
                f"Request to {url} timed out after {self.timeout} seconds",
                url=url,
                schedule_id=schedule.id,
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to Burp failed: {e}",
                extra={
                    "event": "executor.burp.error",
                    "schedule_id": schedule.id,
                    "error_type": type(e).__name__,
                },
            )
            raise ScanServiceError(
                f"Request to {url} failed: {e}", url=url, schedule_id=schedule.id
            ) from e

        if response.status_code >= 400:
            log_level = logging.WARNING if response.status_code >= 500 else logging.ERROR
            logger.log(
                log_level,
                f"HTTP {response.status_code} error from Burp",
                extra={
                    "event": "executor.burp.error",
                    "schedule_id": schedule.id,
                    "status_code": response.status_code,
                },
            )
            raise ScanServiceError(
                f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                url=url,
                schedule_id=schedule.id,
            )

        location = response.headers.get("Location")
        if not location:
            raise ScanServiceError(
                "Burp accepted the scan but returned no Location header",
                status_code=response.status_code,
                url=url,
                schedule_id=schedule.id,
            )

        return extract_scan_id(location), None
