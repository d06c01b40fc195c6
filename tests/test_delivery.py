from datetime import datetime, timezone

import pytest
import requests

from signal_alerts.alerts.delivery import ALERT_TYPE, DeliveryDispatcher
from signal_alerts.signals.market_hours import MarketClock
from signal_alerts.signals.models import Recipient, SignalRecord

from conftest import FakeSession, make_trigger

RELAYS = {"email": "https://relay.test/email", "telegram": "https://relay.test/telegram"}


@pytest.fixture
def signal():
    return SignalRecord.from_record(make_trigger()["record"])


@pytest.fixture
def recipients():
    return [
        Recipient("u1", "a@example.com", "starter"),
        Recipient("u2", "b@example.com", "professional"),
    ]


def test_dispatch_posts_one_batched_request(signal, recipients, fake_session):
    dispatcher = DeliveryDispatcher(RELAYS, session=fake_session, timeout=3)

    result = dispatcher.dispatch(signal, 95, recipients, "email")

    assert result.success is True
    assert result.delivered_count == 2
    assert result.status_code == 200
    [call] = fake_session.calls
    assert call["url"] == RELAYS["email"]
    assert call["timeout"] == 3
    assert call["headers"]["Content-Type"] == "application/json"

    payload = call["json"]
    assert payload["signal_id"] == "s1"
    assert payload["symbol"] == "AAPL"
    assert payload["final_score"] == 95
    assert payload["strength"] == "very_strong"
    assert payload["entry_price"] == 150.0
    assert payload["stop_loss"] == 145.0
    assert payload["take_profit"] == 160.0
    assert payload["signal_type"] == "bullish"
    assert payload["alert_type"] == ALERT_TYPE
    assert payload["user_count"] == 2
    assert payload["eligible_users"][1] == {
        "user_id": "u2",
        "user_email": "b@example.com",
        "subscription_tier": "professional",
    }
    datetime.fromisoformat(payload["timestamp"])


def test_dispatch_uses_channel_relay(signal, fake_session):
    dispatcher = DeliveryDispatcher(RELAYS, session=fake_session)
    dispatcher.dispatch(signal, 85, [Recipient("u1", "999", "professional")], "telegram")

    [call] = fake_session.calls
    assert call["url"] == RELAYS["telegram"]
    assert call["json"]["eligible_users"] == [
        {"user_id": "u1", "chat_id": "999", "subscription_tier": "professional"}
    ]


@pytest.mark.parametrize("status", [301, 400, 404, 500, 503])
def test_non_2xx_is_a_failed_result(signal, recipients, status):
    dispatcher = DeliveryDispatcher(RELAYS, session=FakeSession(status_code=status))

    result = dispatcher.dispatch(signal, 95, recipients, "email")

    assert result.success is False
    assert result.delivered_count == 0
    assert result.status_code == status
    assert str(status) in result.error


@pytest.mark.parametrize("error", [
    requests.ConnectionError("refused"),
    requests.Timeout("read timed out"),
])
def test_network_failure_is_a_failed_result(signal, recipients, error):
    session = FakeSession(error=error)
    dispatcher = DeliveryDispatcher(RELAYS, session=session)

    result = dispatcher.dispatch(signal, 95, recipients, "email")

    assert result.success is False
    assert "Relay request failed" in result.error
    # no retry
    assert len(session.calls) == 1


def test_unexpected_errors_propagate(signal, recipients):
    dispatcher = DeliveryDispatcher(RELAYS, session=FakeSession(error=KeyError("bug")))
    with pytest.raises(KeyError):
        dispatcher.dispatch(signal, 95, recipients, "email")


def test_missing_relay_url(signal, recipients, fake_session):
    dispatcher = DeliveryDispatcher({"email": ""}, session=fake_session)

    result = dispatcher.dispatch(signal, 95, recipients, "email")

    assert result.success is False
    assert dispatcher.has_channel("email") is False
    assert fake_session.calls == []


def test_build_payload_market_session(signal, recipients):
    dispatcher = DeliveryDispatcher(RELAYS, session=FakeSession(), market_clock=MarketClock(holidays=[]))
    # Monday 2026-10-19 14:00 UTC = 10:00 New York
    now = datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc)

    payload = dispatcher.build_payload(signal, 82, recipients, "email", now=now)

    assert payload["market_session"] == "live"
    assert payload["strength"] == "strong"
    assert payload["timestamp"] == now.isoformat()
