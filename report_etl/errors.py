"""
Error Taxonomy

Exceptions raised by the report pipeline stages.
Each error remembers the component and operation it came from so the
orchestrator can turn it into a single structured failure notification.
"""

from typing import Optional


class ReportETLError(Exception):
    """Base class for all pipeline errors."""

    component: str = "ReportETL"
    operation: str = "run"

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        if component:
            self.component = component
        if operation:
            self.operation = operation
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ReportETLError, ValueError):
    """Required configuration is missing or invalid. Fatal at startup."""

    component = "Settings"
    operation = "validate"


class TransientFetchError(ReportETLError):
    """Metrics source unreachable or returned an unusable payload."""

    component = "MetricsFetcher"
    operation = "fetch"


class HolidayFeedError(ReportETLError):
    """Holiday feed unreachable or malformed. Recovered via fallback."""

    component = "WorkingDayGate"
    operation = "get_holidays"


class WriteError(ReportETLError):
    """Spreadsheet update failed."""

    component = "SheetWriter"
    operation = "write"


class NotificationError(ReportETLError):
    """Notification channel failed. Logged and swallowed by notifiers."""

    component = "Notifier"
    operation = "send"
