# SPDX-License-Identifier: MIT
# src/signal_alerts/alerts/__init__.py
"""
Alert dispatch for trading signals.

This module provides:
- Eligibility filtering with daily caps per subscriber and channel
- Batched dispatch to external relays (email, Telegram)
- An append-only delivery ledger
- The pipeline orchestrating all of the above per trigger
"""

from .store import SubscriberStore
from .ledger import DeliveryLedger
from .eligibility import EligibilityFilter
from .delivery import DeliveryDispatcher
from .pipeline import AlertPipeline, create_pipeline

__all__ = [
    "SubscriberStore",
    "DeliveryLedger",
    "EligibilityFilter",
    "DeliveryDispatcher",
    "AlertPipeline",
    "create_pipeline",
]
