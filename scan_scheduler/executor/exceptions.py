"""Custom exceptions for schedule executors."""

from typing import Optional


class ExecutionError(Exception):
    """Base exception for all executor errors.

    Raised when a schedule's scan could not be launched. The daemon records
    it against the occurrence and moves on; it never aborts the polling loop.
    """

    def __init__(self, message: str, schedule_id: Optional[str] = None) -> None:
        """Initialize execution error.

        Args:
            message: Human-readable error message
            schedule_id: Schedule whose execution failed, if known
        """
        super().__init__(message)
        self.schedule_id = schedule_id


class UnsupportedScanError(ExecutionError):
    """The executor cannot run this kind of scan (e.g. Nmap input over REST)."""

    pass


class ScanServiceError(ExecutionError):
    """The scanning service rejected the request or could not be reached.

    Attributes:
        status_code: HTTP status code, or 0 when no response was received
        url: Endpoint that failed
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        url: str = "",
        schedule_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, schedule_id=schedule_id)
        self.status_code = status_code
        self.url = url
