from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from report_etl.notify import (
    SEVERITY_WARNING,
    FailureDetails,
    LogNotifier,
    TelegramNotifier,
    build_notifier,
    format_success_message,
)
from tests.helpers import RecordingNotifier, http_response


def test_success_message(notifier):
    notifier.success("DailyReportJob")
    assert notifier.sent == ["Job DailyReportJob completed successfully"]


def test_success_requires_job_name():
    with pytest.raises(ValueError):
        format_success_message("  ")


def test_failure_message_with_cause(notifier):
    notifier.failure(
        FailureDetails("SheetWriter", "write", "Error updating Google Sheets", ValueError("quota"))
    )
    assert notifier.sent == [
        "Error in SheetWriter.write: Error updating Google Sheets\nDetails: ValueError: quota"
    ]


def test_failure_message_without_cause(notifier):
    notifier.failure(FailureDetails("MetricsFetcher", "fetch", None))
    assert notifier.sent == [
        "Error in MetricsFetcher.fetch: Unknown error occurred\nDetails: No exception details"
    ]


def test_warning_prefix(notifier):
    notifier.failure(FailureDetails("WorkingDayGate", "get_holidays", "feed down",
                                    severity=SEVERITY_WARNING))
    assert notifier.sent[0].startswith("Warning in WorkingDayGate.get_holidays: feed down")


def test_delivery_errors_are_swallowed():
    notifier = RecordingNotifier(fail=True)
    notifier.success("DailyReportJob")
    notifier.failure(FailureDetails("A", "b", "c"))


def test_telegram_posts_message():
    session = MagicMock()
    session.post.return_value = http_response(200, json_body={"ok": True})
    notifier = TelegramNotifier("TOKEN", "1166644090", timeout=4, session=session)

    notifier.success("DailyReportJob")

    session.post.assert_called_once_with(
        "https://api.telegram.org/botTOKEN/sendMessage",
        data={"chat_id": "1166644090", "text": "Job DailyReportJob completed successfully"},
        timeout=4,
    )


def test_telegram_truncates_long_messages():
    session = MagicMock()
    session.post.return_value = http_response(200, json_body={"ok": True})
    notifier = TelegramNotifier("TOKEN", "1", session=session)

    notifier.send("x" * 5000)
    assert len(session.post.call_args.kwargs["data"]["text"]) == 4096


@pytest.mark.parametrize(
    "outcome",
    [
        http_response(500, text="error"),
        http_response(200, json_body={"ok": False, "description": "chat not found"}),
        requests.ConnectionError("down"),
    ],
)
def test_telegram_failures_do_not_escape(outcome):
    session = MagicMock()
    if isinstance(outcome, Exception):
        session.post.side_effect = outcome
    else:
        session.post.return_value = outcome
    notifier = TelegramNotifier("TOKEN", "1", session=session)

    notifier.failure(FailureDetails("MetricsFetcher", "fetch", "boom"))
    assert session.post.call_count == 1


def test_build_notifier_picks_backend():
    telegram = SimpleNamespace(
        telegram_enabled=True, TELEGRAM_BOT_TOKEN="t", TELEGRAM_CHAT_ID="c", http_timeout=2.0
    )
    assert isinstance(build_notifier(telegram), TelegramNotifier)

    log_only = SimpleNamespace(telegram_enabled=False)
    assert isinstance(build_notifier(log_only), LogNotifier)
