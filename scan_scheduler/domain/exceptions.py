"""Domain exceptions."""

from typing import List, Optional


class ScheduleValidationError(ValueError):
    """A schedule, pattern, or scan config violates one of its invariants.

    Validation errors are always surfaced to the caller and never
    auto-corrected. ``errors`` carries one message per offending field when
    the error was built from several pydantic errors.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: " + "; ".join(self.errors)
