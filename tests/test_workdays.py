from __future__ import annotations

import threading
import time
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
import requests

from report_etl.errors import HolidayFeedError
from report_etl.workdays import (
    HolidayCache,
    HolidaySource,
    Provenance,
    WorkingDayGate,
    fallback_holidays,
    parse_day_indicators,
)
from tests.helpers import RecordingNotifier, http_response, indicator_string


def failing_fetch(year):
    raise HolidayFeedError(f"feed down for {year}")


def test_fallback_set_is_fixed():
    days = fallback_holidays(2024)
    expected = {date(2024, 1, d) for d in range(1, 9)} | {
        date(2024, 2, 23),
        date(2024, 3, 8),
        date(2024, 5, 1),
        date(2024, 5, 9),
        date(2024, 6, 12),
        date(2024, 11, 4),
    }
    assert days == expected


def test_parse_keeps_only_weekday_holidays():
    # 2024-03-08 is a Friday, 2024-03-09 a Saturday
    body = indicator_string(2024, {date(2024, 3, 8), date(2024, 3, 9)})
    assert parse_day_indicators(body, 2024) == {date(2024, 3, 8)}


def test_parse_accepts_trailing_newline():
    body = indicator_string(2023, {date(2023, 1, 2)}) + "\n"
    assert parse_day_indicators(body, 2023) == {date(2023, 1, 2)}


@pytest.mark.parametrize(
    "body",
    ["", "0" * 365, "0" * 367, "2" * 366, "error"],
)
def test_parse_rejects_malformed_body(body):
    with pytest.raises(HolidayFeedError):
        parse_day_indicators(body, 2024)


def test_parsed_dates_stay_within_year():
    body = "1" * 366
    days = parse_day_indicators(body, 2024)
    assert all(d.year == 2024 for d in days)
    assert len(days) == 262  # weekdays in 2024


def test_working_day_rule():
    holiday = date(2024, 3, 8)
    gate = WorkingDayGate(lambda year: indicator_string(year, {holiday}))

    assert gate.is_working_day(date(2024, 3, 4)) is True   # Monday
    assert gate.is_working_day(holiday) is False           # Friday holiday
    assert gate.is_working_day(date(2024, 3, 9)) is False  # Saturday
    assert gate.is_working_day(date(2024, 3, 10)) is False  # Sunday


def test_working_day_matches_definition_for_whole_year():
    feed_days = {date(2024, 5, 1), date(2024, 5, 9), date(2024, 12, 31)}
    gate = WorkingDayGate(lambda year: indicator_string(year, feed_days))
    holidays = gate.get_holidays(2024)

    day = date(2024, 1, 1)
    while day.year == 2024:
        assert gate.is_working_day(day) == (day.weekday() < 5 and day not in holidays)
        day += timedelta(days=1)


def test_decide_uses_clock():
    gate = WorkingDayGate(lambda year: "0" * 366, clock=lambda: date(2024, 3, 4))
    decision = gate.decide()
    assert decision.day == date(2024, 3, 4)
    assert decision.is_working_day is True


def test_feed_failure_uses_fallback_and_notifies():
    notifier = RecordingNotifier()
    gate = WorkingDayGate(failing_fetch, notifier=notifier)

    assert gate.get_holidays(2025) == fallback_holidays(2025)
    assert gate.cache.entry.provenance == Provenance.FALLBACK
    assert len(notifier.sent) == 1
    assert notifier.sent[0].startswith("Warning in WorkingDayGate.get_holidays")
    assert gate.is_working_day(date(2025, 1, 8)) is False  # Wednesday in New Year block


def test_malformed_feed_uses_fallback():
    notifier = RecordingNotifier()
    gate = WorkingDayGate(lambda year: "<html>busy</html>", notifier=notifier)
    assert gate.get_holidays(2024) == fallback_holidays(2024)
    assert len(notifier.sent) == 1


def test_fallback_survives_notifier_failure():
    gate = WorkingDayGate(failing_fetch, notifier=RecordingNotifier(fail=True))
    assert gate.get_holidays(2024) == fallback_holidays(2024)


def test_holidays_are_cached_per_year():
    calls = []

    def fetch(year):
        calls.append(year)
        return indicator_string(year, set())

    gate = WorkingDayGate(fetch)
    gate.get_holidays(2024)
    gate.get_holidays(2024)
    gate.is_working_day(date(2024, 6, 3))
    assert calls == [2024]

    gate.get_holidays(2025)
    assert calls == [2024, 2025]
    assert gate.cache.entry.year == 2025
    assert gate.cache.entry.provenance == Provenance.FETCHED


def test_concurrent_callers_share_one_fetch():
    calls = []
    release = threading.Event()

    def slow_fetch(year):
        calls.append(year)
        release.wait(timeout=5)
        return indicator_string(year, {date(year, 3, 8)})

    gate = WorkingDayGate(slow_fetch)
    results = []

    def worker():
        results.append(gate.get_holidays(2024))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    time.sleep(0.1)
    release.set()
    for t in threads:
        t.join(timeout=5)

    assert calls == [2024]
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_cache_holds_single_entry():
    cache = HolidayCache()
    loader = MagicMock(side_effect=lambda y: WorkingDayGate(failing_fetch)._load(y))
    cache.get_or_load(2024, loader)
    cache.get_or_load(2025, loader)
    assert cache.entry.year == 2025
    assert loader.call_count == 2
    cache.clear()
    assert cache.entry is None


def test_year_bounds():
    gate = WorkingDayGate(failing_fetch)
    with pytest.raises(ValueError):
        gate.get_holidays(1899)
    with pytest.raises(ValueError):
        fallback_holidays(2101)


def test_holiday_source_requests_year():
    session = MagicMock()
    session.get.return_value = http_response(200, text="0" * 366)
    source = HolidaySource("https://isdayoff.ru/api/getdata", timeout=3, session=session)

    assert source.fetch(2024) == "0" * 366
    session.get.assert_called_once_with(
        "https://isdayoff.ru/api/getdata", params={"year": 2024}, timeout=3
    )


def test_holiday_source_errors():
    session = MagicMock()
    session.get.return_value = http_response(500, text="oops")
    source = HolidaySource(session=session)
    with pytest.raises(HolidayFeedError, match="HTTP error code 500"):
        source.fetch(2024)

    session.get.side_effect = requests.ConnectionError("no route")
    with pytest.raises(HolidayFeedError) as excinfo:
        source.fetch(2024)
    assert isinstance(excinfo.value.cause, requests.ConnectionError)


def test_gate_with_source_falls_back_on_timeout():
    session = MagicMock()
    session.get.side_effect = requests.Timeout("slow")
    notifier = RecordingNotifier()
    gate = WorkingDayGate(HolidaySource(session=session).fetch, notifier=notifier)

    assert gate.get_holidays(2024) == fallback_holidays(2024)
    assert "Timeout: slow" in notifier.sent[0]


def test_builtin_fetch_errors_use_fallback():
    def timed_out(year):
        raise TimeoutError("read timed out")

    notifier = RecordingNotifier()
    gate = WorkingDayGate(timed_out, notifier=notifier)

    assert gate.get_holidays(2024) == fallback_holidays(2024)
    assert gate.cache.entry.provenance == Provenance.FALLBACK
    assert "TimeoutError: read timed out" in notifier.sent[0]


def test_fallback_survives_notifier_raising_unexpectedly():
    notifier = MagicMock()
    notifier.failure.side_effect = RuntimeError("bot blocked")
    gate = WorkingDayGate(lambda year: "garbage", notifier=notifier)

    assert gate.get_holidays(2024) == fallback_holidays(2024)
    assert gate.is_working_day(date(2024, 3, 4)) is True
    assert notifier.failure.call_count == 1
