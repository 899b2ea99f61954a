from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock

from report_etl.errors import NotificationError
from report_etl.notify import Notifier


class RecordingNotifier(Notifier):
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, message: str) -> None:
        if self.fail:
            raise NotificationError("channel down")
        self.sent.append(message)


def indicator_string(year: int, non_working) -> str:
    start = date(year, 1, 1)
    days = (date(year + 1, 1, 1) - start).days
    return "".join(
        "1" if start + timedelta(days=i) in non_working else "0"
        for i in range(days)
    )


def http_response(status: int = 200, text: str = "", json_body=None):
    response = MagicMock()
    response.status_code = status
    response.text = text
    if json_body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_body
    return response
