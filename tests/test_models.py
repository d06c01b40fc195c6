import pytest

from signal_alerts.errors import ClientInputError, DataShapeError
from signal_alerts.signals.models import (
    Recipient,
    SignalRecord,
    parse_trigger,
)

from conftest import make_subscriber, make_trigger


def test_parse_trigger_camel_case_envelope():
    trigger = parse_trigger(make_trigger())
    assert trigger.operation_type == "UPDATE"
    assert trigger.entity_type == "trading_signals"
    assert trigger.record["ticker"] == "AAPL"
    assert trigger.previous_record is None


def test_parse_trigger_database_webhook_envelope():
    body = {
        "type": "INSERT",
        "table": "trading_signals",
        "record": {"id": "s2"},
        "old_record": {"id": "s2", "ticker": "MSFT"},
    }
    trigger = parse_trigger(body)
    assert trigger.operation_type == "INSERT"
    assert trigger.previous_record == {"id": "s2", "ticker": "MSFT"}


@pytest.mark.parametrize("body", [
    None,
    [],
    "INSERT",
    {"operationType": "DELETE", "entityType": "trading_signals", "record": {"id": "x"}},
    {"entityType": "trading_signals", "record": {"id": "x"}},
    {"operationType": "insert", "entityType": "users", "record": {"id": "x"}},
    {"operationType": "insert", "entityType": "trading_signals", "record": None},
    {"operationType": "insert", "entityType": "trading_signals", "record": ["x"]},
])
def test_parse_trigger_rejects_bad_envelopes(body):
    with pytest.raises(ClientInputError):
        parse_trigger(body)


def test_empty_record_passes_envelope_but_not_record_checks():
    trigger = parse_trigger({"operationType": "INSERT", "entityType": "trading_signals", "record": {}})
    assert trigger.record == {}
    with pytest.raises(DataShapeError):
        SignalRecord.from_record(trigger.record)


def test_parse_trigger_custom_table():
    body = make_trigger()
    body["entityType"] = "signals_v2"
    assert parse_trigger(body, signals_table="signals_v2").entity_type == "signals_v2"
    with pytest.raises(ClientInputError):
        parse_trigger(body)


def test_signal_record_from_record():
    signal = SignalRecord.from_record(make_trigger()["record"])
    assert signal.id == "s1"
    assert signal.symbol == "AAPL"
    assert signal.entry_price == 150.0
    assert signal.stop_loss == 145.0
    assert signal.timeframe_scores["1W"] == 97


def test_signal_record_symbol_fallback_and_defaults():
    record = {"id": 7, "symbol": "TSLA", "entry_price": "200.5", "signals": {"1H": 90}}
    signal = SignalRecord.from_record(record)
    assert signal.id == "7"
    assert signal.symbol == "TSLA"
    assert signal.entry_price == 200.5
    assert signal.signal_type == "bullish"
    assert signal.stop_loss is None


def test_signal_record_scores_are_read_only():
    signal = SignalRecord.from_record(make_trigger()["record"])
    with pytest.raises(TypeError):
        signal.timeframe_scores["1H"] = 0


@pytest.mark.parametrize("overrides", [
    {"signals": {}},
    {"signals": None},
    {"signals": [96, 94]},
    {"ticker": None},
    {"entry_price": None},
    {"entry_price": 0},
    {"entry_price": "abc"},
    {"id": None},
])
def test_signal_record_missing_required_fields(overrides):
    record = make_trigger()["record"]
    record.update(overrides)
    with pytest.raises(DataShapeError):
        SignalRecord.from_record(record)


def test_subscriber_destinations():
    sub = make_subscriber(email="a@example.com", chat_id="  ")
    assert sub.destination_for("email") == "a@example.com"
    assert sub.destination_for("telegram") is None
    assert sub.settings_for("telegram").enabled is False


def test_recipient_payload_per_channel():
    r = Recipient("u1", "a@example.com", "starter")
    assert r.to_payload("email") == {
        "user_id": "u1",
        "user_email": "a@example.com",
        "subscription_tier": "starter",
    }
    assert Recipient("u2", "12345", "professional").to_payload("telegram")["chat_id"] == "12345"
