"""Exception hierarchy for the reporter.

Fatal errors stop the whole run before any output is written. Everything
else is caught close to where it happens and turned into a warning.
"""

from typing import Any, Optional


class ReportError(Exception):
    """Base exception for all reporter errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class NoSessionError(ReportError):
    """No management endpoint is connected."""


class BaselineNotFoundError(ReportError):
    """No patch baseline matches the requested name pattern."""

    def __init__(self, pattern: str, details: Optional[Any] = None):
        super().__init__(f"No baseline found matching '{pattern}'", details)
        self.pattern = pattern


class ScanTimeoutError(ReportError):
    """A compliance scan did not reach 100% within the allowed time."""

    def __init__(self, entity: str, timeout: float, progress: int = 0):
        super().__init__(f"Scan of {entity} timed out after {timeout}s at {progress}%")
        self.entity = entity
        self.timeout = timeout
        self.progress = progress


class WSManError(ReportError):
    """A WS-Management request returned a fault or an unreadable body."""

    def __init__(self, message: str, host: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.host = host
