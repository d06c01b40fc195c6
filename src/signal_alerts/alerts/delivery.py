# SPDX-License-Identifier: MIT
# src/signal_alerts/alerts/delivery.py
"""
Alert dispatch to the external relay (email, Telegram).

One batched POST per (signal, channel): the relay fans the payload out to
the individual recipients and owns any channel-specific formatting.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

import requests

from signal_alerts.signals.market_hours import MarketClock
from signal_alerts.signals.models import Recipient, SignalRecord
from signal_alerts.signals.scoring import strength_label

logger = logging.getLogger(__name__)

ALERT_TYPE = "signal_alert"
USER_AGENT = "SignalAlerts-Dispatcher/1.0"


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    delivered_count: int
    channel: str
    status_code: Optional[int] = None
    error: Optional[str] = None


class DeliveryDispatcher:
    """
    Sends alert payloads to per-channel relay endpoints.

    No retries: a slow or failed call is reported once and left to the
    caller. Only ``requests`` errors are turned into failed results; any
    other exception is a bug and propagates.
    """

    def __init__(
        self,
        relay_urls: Mapping[str, str],
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        market_clock: Optional[MarketClock] = None,
    ):
        """
        Args:
            relay_urls: Relay endpoint per channel, e.g. {"email": "https://..."}
            session: HTTP session (injected so tests can pass a fake)
            timeout: Seconds before the relay call is abandoned
            market_clock: Session classifier used to annotate payloads
        """
        self.relay_urls = dict(relay_urls)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.market_clock = market_clock or MarketClock()

    def has_channel(self, channel: str) -> bool:
        return bool(self.relay_urls.get(channel))

    def build_payload(
        self,
        signal: SignalRecord,
        final_score: int,
        recipients: List[Recipient],
        channel: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        return {
            "signal_id": signal.id,
            "symbol": signal.symbol,
            "final_score": final_score,
            "strength": strength_label(final_score),
            "entry_price": signal.entry_price,
            "stop_loss": signal.stop_loss,
            "take_profit": signal.take_profit,
            "signal_type": signal.signal_type,
            "alert_type": ALERT_TYPE,
            "channel": channel,
            "market_session": self.market_clock.session(now),
            "timestamp": now.isoformat(),
            "user_count": len(recipients),
            "eligible_users": [r.to_payload(channel) for r in recipients],
        }

    def dispatch(
        self,
        signal: SignalRecord,
        final_score: int,
        recipients: List[Recipient],
        channel: str,
    ) -> DispatchResult:
        """Send one batched request for ``recipients``. Never raises on delivery failure."""
        url = self.relay_urls.get(channel)
        if not url:
            logger.error(f"❌ {channel} relay URL not configured")
            return DispatchResult(False, 0, channel, error=f"{channel} relay not configured")

        if not recipients:
            return DispatchResult(True, 0, channel)

        payload = self.build_payload(signal, final_score, recipients, channel)
        logger.info(f"📤 Sending {channel} alert for {signal.symbol} to {len(recipients)} recipients...")

        try:
            response = self.session.post(
                url,
                json=payload,
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
            )
        except requests.RequestException as e:
            logger.error(f"❌ Error sending {channel} alert for {signal.symbol}: {e}", exc_info=True)
            return DispatchResult(False, 0, channel, error=f"Relay request failed: {e}")

        status = response.status_code
        if not 200 <= status < 300:
            logger.error(f"❌ {channel} relay rejected alert for {signal.symbol}: HTTP {status}")
            return DispatchResult(False, 0, channel, status_code=status, error=f"Relay returned HTTP {status}")

        logger.info(f"✅ {channel} alert sent for {signal.symbol}")
        return DispatchResult(True, len(recipients), channel, status_code=status)
