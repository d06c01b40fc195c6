# Ensure `src/` is on sys.path so tests can import `signal_alerts` without requiring editable install
import os
import sys

import pytest
import requests

HERE = os.path.dirname(__file__)
SRC = os.path.abspath(os.path.join(HERE, "..", "src"))
if os.path.isdir(SRC) and SRC not in sys.path:
    sys.path.insert(0, SRC)

from signal_alerts.alerts.store import SubscriberStore  # noqa: E402
from signal_alerts.signals.models import ChannelSettings, Subscriber  # noqa: E402


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code


class FakeSession:
    """Stand-in for requests.Session that records posts."""

    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.calls = []

    def post(self, url, json=None, timeout=None, headers=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout, "headers": headers})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status_code)


@pytest.fixture
def store(tmp_path):
    return SubscriberStore(tmp_path / "alerts.db")


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def failing_session():
    return FakeSession(error=requests.ConnectionError("relay unreachable"))


def make_subscriber(
    sub_id="u1",
    email="u1@example.com",
    chat_id=None,
    tier="starter",
    status="active",
    min_score=80,
    max_per_day=10,
    channels=("email",),
    enabled=True,
):
    settings = {
        ch: ChannelSettings(enabled=enabled, min_signal_score=min_score, max_alerts_per_day=max_per_day)
        for ch in channels
    }
    return Subscriber(
        id=sub_id,
        email_address=email,
        telegram_chat_id=chat_id,
        subscription_tier=tier,
        subscription_status=status,
        alert_settings=settings,
    )


def make_trigger(scores=None, **record_overrides):
    record = {
        "id": "s1",
        "ticker": "AAPL",
        "signal_type": "bullish",
        "entry_price": 150.0,
        "stop_loss": 145.0,
        "take_profit": 160.0,
        "signals": scores if scores is not None else {"1H": 96, "4H": 94, "1D": 93, "1W": 97},
    }
    record.update(record_overrides)
    return {"operationType": "update", "entityType": "trading_signals", "record": record}
