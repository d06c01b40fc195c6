# SPDX-License-Identifier: MIT
# src/signal_alerts/signals/__init__.py
"""
Signal records, score aggregation and market-session labelling.
"""

from .models import SignalRecord, TriggerEvent, parse_trigger
from .scoring import aggregate, strength_label, ALERT_THRESHOLD
from .market_hours import MarketClock

__all__ = [
    "SignalRecord",
    "TriggerEvent",
    "parse_trigger",
    "aggregate",
    "strength_label",
    "ALERT_THRESHOLD",
    "MarketClock",
]
