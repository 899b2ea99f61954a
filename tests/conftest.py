import pytest

from tests.helpers import RecordingNotifier


@pytest.fixture
def notifier():
    return RecordingNotifier()
