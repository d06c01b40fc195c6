# SPDX-License-Identifier: MIT
# src/signal_alerts/signals/models.py
"""
Typed records flowing through the alert pipeline.

Inbound triggers arrive as loose JSON (database webhook payloads). They are
parsed here into explicit structures so the rest of the pipeline never has
to guess which fields exist:

- TriggerEvent: the webhook envelope (operation, table, record)
- SignalRecord: one trading opportunity with per-timeframe sub-scores
- Subscriber / ChannelSettings: rows read from the subscriber store
- Recipient: one resolved destination for one channel
- DeliveryLogEntry: one ledger row
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from signal_alerts.errors import ClientInputError, DataShapeError

CHANNEL_EMAIL = "email"
CHANNEL_TELEGRAM = "telegram"
CHANNELS = (CHANNEL_EMAIL, CHANNEL_TELEGRAM)

# Subscriber attribute holding the destination for each channel
DESTINATION_FIELDS = {
    CHANNEL_EMAIL: "email_address",
    CHANNEL_TELEGRAM: "telegram_chat_id",
}

ACTIVE_STATUSES = ("active", "trial")
SUPPORTED_OPERATIONS = ("INSERT", "UPDATE")

STATUS_SENT = "sent"
STATUS_FAILED = "failed"

DEFAULT_SIGNAL_TYPE = "bullish"


@dataclass(frozen=True)
class SignalRecord:
    """One trading signal as produced by the upstream signal engine."""

    id: str
    symbol: str
    entry_price: float
    timeframe_scores: Mapping[str, Any]
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    signal_type: str = DEFAULT_SIGNAL_TYPE
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "SignalRecord":
        """
        Validate a raw record and build a SignalRecord.

        Raises:
            DataShapeError: if the score map, symbol, entry price or id is missing
        """
        scores = record.get("signals")
        symbol = record.get("ticker") or record.get("symbol")
        entry_price = record.get("entry_price")

        if not isinstance(scores, Mapping) or not scores or not symbol or not entry_price:
            raise DataShapeError("Signal missing required data structure")
        if record.get("id") in (None, ""):
            raise DataShapeError("Signal missing id")

        try:
            price = float(entry_price)
        except (TypeError, ValueError):
            raise DataShapeError(f"Invalid entry_price: {entry_price!r}")

        return cls(
            id=str(record["id"]),
            symbol=str(symbol),
            entry_price=price,
            timeframe_scores=MappingProxyType(dict(scores)),
            stop_loss=_optional_float(record.get("stop_loss")),
            take_profit=_optional_float(record.get("take_profit")),
            signal_type=record.get("signal_type") or DEFAULT_SIGNAL_TYPE,
            created_at=record.get("created_at"),
        )


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class TriggerEvent:
    """Database webhook envelope announcing an inserted or updated signal."""

    operation_type: str
    entity_type: str
    record: Mapping[str, Any]
    previous_record: Optional[Mapping[str, Any]] = None


def parse_trigger(body: Any, signals_table: str = "trading_signals") -> TriggerEvent:
    """
    Parse and validate an inbound trigger body.

    Accepts both the camelCase envelope (``operationType``/``entityType``/
    ``previousRecord``) and the raw database webhook one
    (``type``/``table``/``old_record``).

    Raises:
        ClientInputError: on any shape problem with the envelope itself
    """
    if not isinstance(body, Mapping):
        raise ClientInputError("Trigger body must be a JSON object.")

    operation = body.get("operationType", body.get("type"))
    if not isinstance(operation, str) or operation.upper() not in SUPPORTED_OPERATIONS:
        raise ClientInputError("Invalid webhook type. Expected INSERT or UPDATE.")

    entity = body.get("entityType", body.get("table"))
    if entity != signals_table:
        raise ClientInputError(f"Invalid table. Expected {signals_table}.")

    record = body.get("record")
    if record is None:
        raise ClientInputError("Missing record data.")
    if not isinstance(record, Mapping):
        raise ClientInputError("Record must be a JSON object.")

    previous = body.get("previousRecord", body.get("old_record"))
    return TriggerEvent(
        operation_type=operation.upper(),
        entity_type=entity,
        record=record,
        previous_record=previous if isinstance(previous, Mapping) else None,
    )


@dataclass(frozen=True)
class ChannelSettings:
    """Per-channel alert preferences of one subscriber."""

    enabled: bool = True
    min_signal_score: int = 0
    max_alerts_per_day: Optional[int] = None


@dataclass(frozen=True)
class Subscriber:
    id: str
    subscription_tier: str
    subscription_status: str
    email_address: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    alert_settings: Dict[str, ChannelSettings] = field(default_factory=dict)

    def destination_for(self, channel: str) -> Optional[str]:
        value = getattr(self, DESTINATION_FIELDS[channel], None)
        if value is None or not str(value).strip():
            return None
        return str(value)

    def settings_for(self, channel: str) -> ChannelSettings:
        return self.alert_settings.get(channel, ChannelSettings(enabled=False))


@dataclass(frozen=True)
class Recipient:
    """A subscriber resolved to a destination on one channel."""

    subscriber_id: str
    destination: str
    tier: str

    def to_payload(self, channel: str) -> Dict[str, Any]:
        if channel == CHANNEL_EMAIL:
            return {
                "user_id": self.subscriber_id,
                "user_email": self.destination,
                "subscription_tier": self.tier,
            }
        return {
            "user_id": self.subscriber_id,
            "chat_id": self.destination,
            "subscription_tier": self.tier,
        }


@dataclass(frozen=True)
class DeliveryLogEntry:
    subscriber_id: str
    signal_id: str
    channel: str
    status: str
    timestamp: str
    error_message: Optional[str] = None
