"""
Operator Notifications

Formats success and failure messages and hands them to a delivery backend.
Backends are interchangeable: Telegram, log-only, or no-op.
Delivery failures are logged and swallowed so they never change a job's outcome.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from report_etl.errors import NotificationError

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE_FORMAT = "Job {job} completed successfully"
FAILURE_MESSAGE_FORMAT = "{prefix} in {component}.{operation}: {message}\nDetails: {details}"
DEFAULT_ERROR_MESSAGE = "Unknown error occurred"
NO_EXCEPTION_DETAILS = "No exception details"

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"


@dataclass(frozen=True)
class FailureDetails:
    """Structured description of a failed operation."""
    component: str
    operation: str
    message: Optional[str] = None
    cause: Optional[BaseException] = None
    severity: str = SEVERITY_ERROR

    def format(self) -> str:
        prefix = "Warning" if self.severity == SEVERITY_WARNING else "Error"
        details = describe_exception(self.cause) if self.cause is not None else NO_EXCEPTION_DETAILS
        return FAILURE_MESSAGE_FORMAT.format(
            prefix=prefix,
            component=self.component,
            operation=self.operation,
            message=self.message or DEFAULT_ERROR_MESSAGE,
            details=details,
        )


def describe_exception(exc: BaseException) -> str:
    """Render an exception as ``TypeName: message``."""
    text = str(exc)
    name = type(exc).__name__
    return f"{name}: {text}" if text else name


def format_success_message(job_name: str) -> str:
    if not job_name or not job_name.strip():
        raise ValueError("Job name must not be null or empty")
    return SUCCESS_MESSAGE_FORMAT.format(job=job_name)


class Notifier(ABC):
    """
    Operator notification channel.

    Subclasses implement ``send``; ``success`` and ``failure`` never raise
    because of a delivery problem.
    """

    @abstractmethod
    def send(self, message: str) -> None:
        """
        Deliver a single message.

        Raises:
            NotificationError: If the backend could not deliver the message
        """

    def success(self, job_name: str) -> None:
        """Report a successfully completed job."""
        message = format_success_message(job_name)
        logger.info(message)
        self._deliver(message)

    def failure(self, details: FailureDetails) -> None:
        """Report a failed (or degraded) operation."""
        message = details.format()
        if details.severity == SEVERITY_WARNING:
            logger.warning(message)
        else:
            logger.error(message)
        self._deliver(message)

    def _deliver(self, message: str) -> None:
        try:
            self.send(message)
        except NotificationError as e:
            logger.error(f"Failed to deliver notification via {type(self).__name__}: {e}")


class NullNotifier(Notifier):
    """Drops every message."""

    def send(self, message: str) -> None:
        pass


class LogNotifier(Notifier):
    """Writes messages to the application log only."""

    def send(self, message: str) -> None:
        logger.info(f"Notification: {message}")


class TelegramNotifier(Notifier):
    """
    Sends messages to a Telegram chat through the Bot API.

    Uses a single POST to ``sendMessage`` with a bounded timeout and no retries.
    """

    API_URL = "https://api.telegram.org/bot{token}/sendMessage"
    # Telegram rejects longer texts
    MAX_MESSAGE_LENGTH = 4096

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Telegram notifier.

        Args:
            bot_token: Bot API token
            chat_id: Target chat identifier
            timeout: Request timeout in seconds
            session: Optional requests session (a new one is created if omitted)
        """
        if not bot_token or not chat_id:
            raise ValueError("Telegram bot token and chat id are required")
        self.chat_id = chat_id
        self.timeout = timeout
        self._url = self.API_URL.format(token=bot_token)
        self.session = session or requests.Session()

    def send(self, message: str) -> None:
        if not message or not message.strip():
            raise ValueError("Message must not be empty")

        payload = {
            "chat_id": self.chat_id,
            "text": message[: self.MAX_MESSAGE_LENGTH],
        }

        try:
            response = self.session.post(self._url, data=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotificationError(
                "IO error while sending Telegram notification",
                component="TelegramNotifier",
                cause=e,
            ) from e

        if response.status_code != 200:
            raise NotificationError(
                f"Failed to send Telegram notification. Status code: {response.status_code}",
                component="TelegramNotifier",
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if isinstance(body, dict) and body.get("ok") is False:
            raise NotificationError(
                f"Telegram API rejected the message: {body.get('description', 'no description')}",
                component="TelegramNotifier",
            )

        logger.info("Telegram notification sent successfully")


def build_notifier(settings) -> Notifier:
    """
    Pick the notification backend from settings.

    Args:
        settings: Settings object with TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID

    Returns:
        TelegramNotifier when both values are set, LogNotifier otherwise
    """
    if settings.telegram_enabled:
        logger.info("Operator notifications go to Telegram")
        return TelegramNotifier(
            settings.TELEGRAM_BOT_TOKEN,
            settings.TELEGRAM_CHAT_ID,
            timeout=settings.http_timeout,
        )
    logger.warning("Telegram is not configured; notifications will be logged only")
    return LogNotifier()
