"""
Configuration Management

Loads environment variables and provides settings for the daily report job.
Uses python-dotenv for local development and environment variables for production.
"""

import os
import re
from datetime import time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from report_etl.errors import ConfigurationError

# Load .env file for local development
load_dotenv()

_SCHEDULE_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


class Settings:
    """
    Application settings loaded from environment variables.

    Ensures no hardcoded credentials in code.
    """

    REQUIRED_FIELDS = ["METRICS_API_URL", "GOOGLE_SHEET_ID"]

    def __init__(self):
        """Read the environment and validate required settings."""
        # Application
        self.APP_NAME: str = os.getenv("APP_NAME", "CRM Sheets Daily Report")
        self.APP_VERSION: str = os.getenv("APP_VERSION", "1.0.0")

        # CRM metrics source
        self.METRICS_API_URL: Optional[str] = os.getenv("METRICS_API_URL")
        self.HTTP_TIMEOUT: str = os.getenv("HTTP_TIMEOUT", "10")

        # Holiday feed
        self.HOLIDAY_API_URL: str = os.getenv(
            "HOLIDAY_API_URL", "https://isdayoff.ru/api/getdata"
        )

        # Google Sheets Configuration
        self.GOOGLE_SHEET_ID: Optional[str] = os.getenv("GOOGLE_SHEET_ID")
        self.GOOGLE_CREDENTIALS_PATH: str = os.getenv(
            "GOOGLE_CREDENTIALS_PATH", "credentials.json"
        )
        self.SHEET_NAME: str = os.getenv("SHEET_NAME", "Для бота2")
        self.SHEET_RANGE: str = os.getenv("SHEET_RANGE", "A10:E21")

        # Telegram notifications (optional)
        self.TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN")
        self.TELEGRAM_CHAT_ID: Optional[str] = os.getenv("TELEGRAM_CHAT_ID")

        # Scheduling
        self.SCHEDULE_TIME: str = os.getenv("SCHEDULE_TIME", "20:55")
        self.TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Moscow")

        # Logging Configuration
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_FILE: str = os.getenv("LOG_FILE", "logs/report_etl.log")

        self._validate_settings()

    def _validate_settings(self) -> None:
        """
        Validate that all required settings are provided and well formed.

        Raises:
            ConfigurationError: If required settings are missing or invalid
        """
        missing_fields = [
            field for field in self.REQUIRED_FIELDS
            if not getattr(self, field, None)
        ]

        if missing_fields:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_fields)}. "
                f"Please check your .env file."
            )

        # Parsed values must be valid at startup, not at the first tick
        for parsed in ("schedule_time", "http_timeout", "tzinfo"):
            getattr(self, parsed)

    @property
    def schedule_time(self) -> time:
        """Daily trigger time parsed from SCHEDULE_TIME (HH:MM)."""
        match = _SCHEDULE_TIME_RE.match(self.SCHEDULE_TIME.strip())
        if not match:
            raise ConfigurationError(
                f"SCHEDULE_TIME must be HH:MM, got: {self.SCHEDULE_TIME!r}"
            )
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ConfigurationError(f"SCHEDULE_TIME out of range: {self.SCHEDULE_TIME!r}")
        return time(hour, minute)

    @property
    def http_timeout(self) -> float:
        """Timeout in seconds applied to every outbound HTTP call."""
        try:
            timeout = float(self.HTTP_TIMEOUT)
        except (TypeError, ValueError):
            raise ConfigurationError(f"HTTP_TIMEOUT must be a number, got: {self.HTTP_TIMEOUT!r}")
        if timeout <= 0:
            raise ConfigurationError(f"HTTP_TIMEOUT must be positive, got: {timeout}")
        return timeout

    @property
    def tzinfo(self) -> ZoneInfo:
        try:
            return ZoneInfo(self.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown TIMEZONE: {self.TIMEZONE!r}")

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN and self.TELEGRAM_CHAT_ID)

    def __repr__(self) -> str:
        """Return string representation (excluding sensitive data)."""
        return (
            f"Settings("
            f"APP_NAME={self.APP_NAME}, "
            f"SHEET_NAME={self.SHEET_NAME}, "
            f"SHEET_RANGE={self.SHEET_RANGE}, "
            f"SCHEDULE_TIME={self.SCHEDULE_TIME}, "
            f"TIMEZONE={self.TIMEZONE}, "
            f"telegram_enabled={self.telegram_enabled}"
            f")"
        )
