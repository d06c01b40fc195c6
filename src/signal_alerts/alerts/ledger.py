# SPDX-License-Identifier: MIT
# src/signal_alerts/alerts/ledger.py
"""
Delivery ledger: one append-only entry per (recipient, signal, channel) attempt.

The same rows are the lookback window for daily caps. "Today" is the
calendar day in the relay time zone, taken as a half-open UTC interval.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from signal_alerts.signals.models import STATUS_SENT, DeliveryLogEntry, Recipient
from .store import SubscriberStore, utc_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayWindow:
    """Half-open [start, end) interval as UTC ISO strings."""

    start: str
    end: str

    @classmethod
    def for_day(cls, now: datetime, tz: ZoneInfo) -> "DayWindow":
        local = now.astimezone(tz)
        midnight = datetime(local.year, local.month, local.day, tzinfo=tz)
        next_day = (midnight + timedelta(days=1)).date()
        next_midnight = datetime(next_day.year, next_day.month, next_day.day, tzinfo=tz)
        return cls(start=utc_timestamp(midnight), end=utc_timestamp(next_midnight))


class DeliveryLedger:
    """Records delivery attempts and answers "how many sent today"."""

    def __init__(self, store: SubscriberStore, timezone_name: str = "UTC"):
        self.store = store
        self.tz = ZoneInfo(timezone_name)

    def today(self, now: Optional[datetime] = None) -> DayWindow:
        return DayWindow.for_day(now or datetime.now(timezone.utc), self.tz)

    def sent_count(self, subscriber_id: str, channel: str, window: DayWindow) -> int:
        """Sent entries for one subscriber/channel inside ``window``. Errors propagate."""
        return self.store.count_deliveries(
            subscriber_id, channel, STATUS_SENT, window.start, window.end
        )

    def already_sent(self, signal_id: str, subscriber_id: str, channel: str) -> bool:
        return self.store.has_delivery(signal_id, subscriber_id, channel, STATUS_SENT)

    def record(
        self,
        signal_id: str,
        recipients: Iterable[Recipient],
        channel: str,
        status: str,
        error_message: Optional[str] = None,
    ) -> bool:
        """
        Append one entry per recipient.

        Best-effort: a persistence failure is logged and reported as False,
        never raised. The alert has already gone out by the time this runs.
        """
        now = utc_timestamp()
        entries = [
            DeliveryLogEntry(
                subscriber_id=r.subscriber_id,
                signal_id=signal_id,
                channel=channel,
                status=status,
                timestamp=now,
                error_message=error_message,
            )
            for r in recipients
        ]
        if not entries:
            return True

        try:
            written = self.store.append_deliveries(entries)
        except Exception as e:
            logger.error(
                f"Failed to log {len(entries)} {channel} deliveries for signal {signal_id}: {e}",
                exc_info=True,
            )
            return False

        logger.info(f"📊 Logged {written} {channel} deliveries for signal {signal_id} (status={status})")
        return True
