# SPDX-License-Identifier: MIT
# src/signal_alerts/alerts/eligibility.py
"""
Selects which subscribers may receive an alert on a channel right now.
"""
from __future__ import annotations
import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from signal_alerts.signals.models import Recipient, Subscriber
from .ledger import DayWindow, DeliveryLedger
from .store import SubscriberStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ALERTS_PER_DAY = 10

REASON_DAILY_LIMIT = "daily_limit_reached"
REASON_ALREADY_SENT = "already_sent"
REASON_LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class CandidateResult:
    """Outcome of evaluating one candidate: included, or excluded with a reason."""

    subscriber: Subscriber
    recipient: Optional[Recipient] = None
    reason: Optional[str] = None
    sent_today: Optional[int] = None
    error: Optional[str] = None

    @property
    def included(self) -> bool:
        return self.recipient is not None


@dataclass
class EligibilityBatch:
    channel: str
    final_score: int
    results: List[CandidateResult] = field(default_factory=list)

    @property
    def eligible(self) -> List[Recipient]:
        """Surviving recipients in store order."""
        return [r.recipient for r in self.results if r.recipient is not None]

    @property
    def excluded(self) -> List[CandidateResult]:
        return [r for r in self.results if not r.included]

    def excluded_breakdown(self) -> Dict[str, int]:
        return dict(Counter(r.reason for r in self.excluded))


class EligibilityFilter:
    """
    Applies status, destination, enabled, min-score and daily-cap rules.

    Daily-count lookups run on a bounded thread pool. All lookups read the
    ledger before this invocation writes anything, against a day window
    fixed when the batch starts.
    """

    def __init__(
        self,
        store: SubscriberStore,
        ledger: DeliveryLedger,
        default_max_alerts_per_day: int = DEFAULT_MAX_ALERTS_PER_DAY,
        max_workers: int = 8,
        channel_tiers: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.default_max_alerts_per_day = default_max_alerts_per_day
        self.max_workers = max(1, max_workers)
        self.channel_tiers = dict(channel_tiers or {})

    def select_eligible(
        self,
        final_score: int,
        channel: str,
        signal_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> EligibilityBatch:
        """
        Evaluate every candidate for ``channel``.

        Args:
            final_score: Aggregated signal score
            channel: Delivery channel ("email", "telegram")
            signal_id: When given, subscribers already sent this signal on
                       this channel are excluded
            now: Reference time for the daily window (default: current time)

        Raises:
            DependencyError: if the candidate query itself fails
        """
        candidates = self.store.find_candidates(
            channel, final_score, tiers=self.channel_tiers.get(channel)
        )
        batch = EligibilityBatch(channel=channel, final_score=final_score)
        if not candidates:
            logger.info(f"No {channel} candidates at score {final_score}")
            return batch

        unique: List[Subscriber] = []
        seen = set()
        for sub in candidates:
            if sub.id not in seen:
                seen.add(sub.id)
                unique.append(sub)

        window = self.ledger.today(now)
        workers = min(self.max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._evaluate, sub, channel, window, signal_id)
                for sub in unique
            ]
            batch.results = [f.result() for f in futures]

        logger.info(
            f"✅ {len(batch.eligible)}/{len(unique)} {channel} candidates eligible "
            f"(excluded: {batch.excluded_breakdown()})"
        )
        return batch

    def _evaluate(
        self,
        sub: Subscriber,
        channel: str,
        window: DayWindow,
        signal_id: Optional[str],
    ) -> CandidateResult:
        settings = sub.settings_for(channel)
        max_alerts = settings.max_alerts_per_day or self.default_max_alerts_per_day

        try:
            if signal_id is not None and self.ledger.already_sent(signal_id, sub.id, channel):
                logger.debug(f"Subscriber {sub.id} already received {signal_id} via {channel}")
                return CandidateResult(sub, reason=REASON_ALREADY_SENT)
            sent_today = self.ledger.sent_count(sub.id, channel, window)
        except Exception as e:
            logger.error(
                f"❌ Error checking daily {channel} limit for subscriber {sub.id}: {e}",
                exc_info=True,
            )
            return CandidateResult(sub, reason=REASON_LOOKUP_FAILED, error=str(e))

        if sent_today >= max_alerts:
            logger.info(
                f"Subscriber {sub.id} exceeded daily {channel} limit ({sent_today}/{max_alerts})"
            )
            return CandidateResult(sub, reason=REASON_DAILY_LIMIT, sent_today=sent_today)

        recipient = Recipient(
            subscriber_id=sub.id,
            destination=sub.destination_for(channel) or "",
            tier=sub.subscription_tier,
        )
        return CandidateResult(sub, recipient=recipient, sent_today=sent_today)
