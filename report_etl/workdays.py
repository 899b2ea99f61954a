"""
Working-Day Gate

Decides whether a scheduled tick should run: a working day is Monday-Friday
and not a public holiday. Holidays come from the isdayoff.ru production
calendar feed, are cached for the current year only, and fall back to a
fixed table when the feed is unavailable.
"""

import calendar
import logging
import threading
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Callable, FrozenSet, Optional

import requests

from report_etl.errors import HolidayFeedError
from report_etl.notify import FailureDetails, Notifier, NullNotifier, SEVERITY_WARNING

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100

# (month, first day, last day)
FALLBACK_HOLIDAY_RULES = [
    (1, 1, 8),
    (2, 23, 23),
    (3, 8, 8),
    (5, 1, 1),
    (5, 9, 9),
    (6, 12, 12),
    (11, 4, 4),
]


class Provenance(str, Enum):
    FETCHED = "fetched"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class HolidayEntry:
    """Holiday set for one calendar year."""
    year: int
    dates: FrozenSet[date]
    provenance: Provenance


@dataclass(frozen=True)
class BusinessDayDecision:
    day: date
    is_working_day: bool


def validate_year(year: int) -> int:
    if not isinstance(year, int) or isinstance(year, bool):
        raise TypeError(f"Year must be an integer, got: {year!r}")
    if year < MIN_YEAR or year > MAX_YEAR:
        raise ValueError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}, got: {year}")
    return year


def fallback_holidays(year: int) -> FrozenSet[date]:
    """Fixed holiday set used when the feed is unavailable."""
    validate_year(year)
    days = set()
    for month, first, last in FALLBACK_HOLIDAY_RULES:
        for day in range(first, last + 1):
            days.add(date(year, month, day))
    return frozenset(days)


def parse_day_indicators(body: str, year: int) -> FrozenSet[date]:
    """
    Turn an isdayoff.ru response into the set of weekday holidays.

    The body carries one character per day of the year, '1' for a non-working
    day and '0' for a working one. Non-working days on Saturday or Sunday are
    skipped since the weekday rule already excludes them.

    Args:
        body: Raw response text
        year: Year the body describes

    Returns:
        Holiday dates falling on Monday-Friday

    Raises:
        HolidayFeedError: If the body is not a day-indicator string for the year
    """
    indicators = (body or "").strip()
    expected = 366 if calendar.isleap(year) else 365

    if len(indicators) != expected:
        raise HolidayFeedError(
            f"Holiday feed returned {len(indicators)} day indicators for {year}, expected {expected}"
        )
    unexpected = set(indicators) - {"0", "1"}
    if unexpected:
        raise HolidayFeedError(
            f"Holiday feed returned unexpected indicators for {year}: {''.join(sorted(unexpected))}"
        )

    jan_first = date(year, 1, 1)
    holidays = set()
    for offset, flag in enumerate(indicators):
        if flag != "1":
            continue
        day = jan_first + timedelta(days=offset)
        if day.weekday() < 5:
            holidays.add(day)
    return frozenset(holidays)


class HolidaySource:
    """Client for the isdayoff.ru yearly production-calendar feed."""

    def __init__(
        self,
        base_url: str = "https://isdayoff.ru/api/getdata",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, year: int) -> str:
        """
        Fetch the raw day-indicator string for a year.

        Raises:
            HolidayFeedError: On transport failure or a non-200 response
        """
        validate_year(year)
        try:
            response = self.session.get(
                self.base_url, params={"year": year}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise HolidayFeedError(
                f"Error fetching holiday data for year: {year}", cause=e
            ) from e

        if response.status_code != 200:
            raise HolidayFeedError(
                f"Error fetching holiday data for year {year}: HTTP error code {response.status_code}"
            )
        return response.text


class HolidayCache:
    """
    Holds the holiday set for a single year.

    The lock is held while a missing year is loaded, so concurrent callers
    for the same year wait for one load and share its result.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entry: Optional[HolidayEntry] = None

    @property
    def entry(self) -> Optional[HolidayEntry]:
        return self._entry

    def get_or_load(self, year: int, loader: Callable[[int], HolidayEntry]) -> HolidayEntry:
        entry = self._entry
        if entry is not None and entry.year == year:
            return entry

        with self._lock:
            entry = self._entry
            if entry is not None and entry.year == year:
                return entry
            entry = loader(year)
            self._entry = entry
            logger.info(
                f"Holiday cache updated for year {year} "
                f"({len(entry.dates)} days, {entry.provenance.value})"
            )
            return entry

    def clear(self) -> None:
        with self._lock:
            self._entry = None


class WorkingDayGate:
    """
    Answers "should today's tick run?".

    Args:
        fetch_days: Callable returning the raw day-indicator string for a year
        notifier: Receives a warning when the feed fails and the fallback is used
        clock: Returns today's date
        cache: Holiday cache (a private one is created if omitted)
    """

    def __init__(
        self,
        fetch_days: Callable[[int], str],
        notifier: Optional[Notifier] = None,
        clock: Callable[[], date] = date.today,
        cache: Optional[HolidayCache] = None,
    ):
        self.fetch_days = fetch_days
        self.notifier = notifier or NullNotifier()
        self.clock = clock
        self.cache = cache or HolidayCache()

    def is_working_day(self, day: Optional[date] = None) -> bool:
        day = day or self.clock()
        if day.weekday() >= 5:
            return False
        return day not in self.get_holidays(day.year)

    def decide(self, day: Optional[date] = None) -> BusinessDayDecision:
        day = day or self.clock()
        return BusinessDayDecision(day=day, is_working_day=self.is_working_day(day))

    def get_holidays(self, year: int) -> FrozenSet[date]:
        validate_year(year)
        return self.cache.get_or_load(year, self._load).dates

    def _load(self, year: int) -> HolidayEntry:
        try:
            body = self.fetch_days(year)
            dates = parse_day_indicators(body, year)
            logger.info(f"Successfully fetched holiday data for year: {year}")
            return HolidayEntry(year, dates, Provenance.FETCHED)
        except HolidayFeedError as e:
            self._report_fallback(year, e)
        except Exception as e:
            self._report_fallback(
                year, HolidayFeedError(f"Error fetching holiday data for year: {year}", cause=e)
            )

        return HolidayEntry(year, fallback_holidays(year), Provenance.FALLBACK)

    def _report_fallback(self, year: int, error: HolidayFeedError) -> None:
        logger.warning(f"Holiday feed unavailable, using default holidays for year {year}: {error}")
        details = FailureDetails(
            component=error.component,
            operation=error.operation,
            message=f"{error.message}. Using default holidays for year {year}",
            cause=error.cause,
            severity=SEVERITY_WARNING,
        )
        try:
            self.notifier.failure(details)
        except Exception as e:
            logger.error(f"Holiday fallback notification failed: {e}", exc_info=True)
