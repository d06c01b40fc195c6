# src/signal_alerts/signals/market_hours.py
"""
US equity market session classification.

Used only to annotate alert payloads for display; delivery logic never
branches on the session.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Iterable, Optional, Set
from zoneinfo import ZoneInfo

MARKET_TZ = ZoneInfo("America/New_York")

MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)

SESSION_LIVE = "live"
SESSION_PRE_MARKET = "pre_market"
SESSION_AFTER_HOURS = "after_hours"
SESSION_WEEKEND = "weekend"
SESSION_HOLIDAY = "holiday"

# NYSE full-day closures
NYSE_HOLIDAYS = {
    date(2025, 1, 1), date(2025, 1, 9), date(2025, 1, 20), date(2025, 2, 17),
    date(2025, 4, 18), date(2025, 5, 26), date(2025, 6, 19), date(2025, 7, 4),
    date(2025, 9, 1), date(2025, 11, 27), date(2025, 12, 25),
    date(2026, 1, 1), date(2026, 1, 19), date(2026, 2, 16), date(2026, 4, 3),
    date(2026, 5, 25), date(2026, 6, 19), date(2026, 7, 3), date(2026, 9, 7),
    date(2026, 11, 26), date(2026, 12, 25),
    date(2027, 1, 1), date(2027, 1, 18), date(2027, 2, 15), date(2027, 3, 26),
    date(2027, 5, 31), date(2027, 6, 18), date(2027, 7, 5), date(2027, 9, 6),
    date(2027, 11, 25), date(2027, 12, 24),
}


class MarketClock:
    """Classifies a point in time into a market session."""

    def __init__(self, holidays: Optional[Iterable[date]] = None, tz: ZoneInfo = MARKET_TZ):
        self.holidays: Set[date] = set(NYSE_HOLIDAYS if holidays is None else holidays)
        self.tz = tz

    def session(self, when: Optional[datetime] = None) -> str:
        """
        Return one of live / pre_market / after_hours / weekend / holiday.

        Naive datetimes are taken as UTC.
        """
        when = when or datetime.now(timezone.utc)
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        local = when.astimezone(self.tz)

        if local.weekday() >= 5:
            return SESSION_WEEKEND
        if local.date() in self.holidays:
            return SESSION_HOLIDAY
        if local.time() < MARKET_OPEN:
            return SESSION_PRE_MARKET
        if local.time() < MARKET_CLOSE:
            return SESSION_LIVE
        return SESSION_AFTER_HOURS
