# SPDX-License-Identifier: MIT
# src/signal_alerts/alerts/pipeline.py
"""
Alert pipeline - turns one signal trigger into delivered, logged alerts.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from signal_alerts.config import Settings
from signal_alerts.errors import AlertPipelineError, ClientInputError, DependencyError, InternalFault
from signal_alerts.signals.models import (
    CHANNEL_EMAIL,
    CHANNEL_TELEGRAM,
    STATUS_FAILED,
    STATUS_SENT,
    SignalRecord,
    parse_trigger,
)
from signal_alerts.signals.scoring import ALERT_THRESHOLD, aggregate, meets_threshold, strength_label
from .delivery import DeliveryDispatcher, DispatchResult
from .eligibility import EligibilityBatch, EligibilityFilter
from .ledger import DeliveryLedger
from .store import SubscriberStore

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    SCORED = "scored"
    BELOW_THRESHOLD = "below_threshold"
    ELIGIBLE = "eligible"
    DISPATCHED = "dispatched"
    LOGGED = "logged"
    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass
class PipelineResponse:
    status_code: int
    body: Dict[str, Any]
    states: List[PipelineState] = field(default_factory=list)

    @property
    def state(self) -> PipelineState:
        return self.states[-1]


@dataclass
class ChannelOutcome:
    channel: str
    batch: Optional[EligibilityBatch] = None
    dispatch: Optional[DispatchResult] = None
    logged: Optional[bool] = None
    error: Optional[str] = None

    @property
    def recipient_count(self) -> int:
        return len(self.batch.eligible) if self.batch else 0

    def summary(self) -> Dict[str, Any]:
        return {
            "eligible": self.recipient_count,
            "excluded": self.batch.excluded_breakdown() if self.batch else {},
            "sent": bool(self.dispatch and self.dispatch.success and self.recipient_count),
            "logged": self.logged,
            "error": self.error or (self.dispatch.error if self.dispatch else None),
        }


class AlertPipeline:
    """
    Orchestrates one trigger end to end:
    1. Validate the trigger envelope and signal record
    2. Aggregate the final score and stop below the alert threshold
    3. Per channel: select eligible subscribers, dispatch once, log the attempt

    Holds no per-request state; concurrent calls to ``process`` share only
    the injected collaborators.
    """

    def __init__(
        self,
        eligibility: EligibilityFilter,
        dispatcher: DeliveryDispatcher,
        ledger: DeliveryLedger,
        channels: Sequence[str] = (CHANNEL_EMAIL, CHANNEL_TELEGRAM),
        signals_table: str = "trading_signals",
    ):
        self.eligibility = eligibility
        self.dispatcher = dispatcher
        self.ledger = ledger
        self.channels = tuple(channels)
        self.signals_table = signals_table

    def process(self, body: Any) -> PipelineResponse:
        """
        Handle one inbound trigger body.

        Returns:
            PipelineResponse with an HTTP-style status: 400 for a malformed
            trigger, 500 for unexpected faults, 200 for everything else
        """
        states = [PipelineState.RECEIVED]
        try:
            return self._process(body, states)
        except ClientInputError as e:
            logger.warning(f"Rejected trigger: {e}")
            return self._errored(e, states)
        except AlertPipelineError as e:
            logger.warning(f"⚠️ Alert processing stopped: {e}")
            return self._errored(e, states)
        except Exception as e:
            logger.error(f"❌ Error processing signal alerts: {e}", exc_info=True)
            return self._errored(InternalFault(), states)

    @staticmethod
    def _errored(error: AlertPipelineError, states: List[PipelineState]) -> PipelineResponse:
        states.append(PipelineState.ERRORED)
        return PipelineResponse(error.status_code, error.to_body(), states)

    def _process(self, body: Any, states: List[PipelineState]) -> PipelineResponse:
        trigger = parse_trigger(body, self.signals_table)
        states.append(PipelineState.VALIDATED)
        signal = SignalRecord.from_record(trigger.record)
        logger.info(f"📊 Processing {trigger.operation_type} alert for {signal.symbol} (ID: {signal.id})")

        score = aggregate(signal.timeframe_scores)
        states.append(PipelineState.SCORED)
        logger.info(f"📊 Calculated score for {signal.symbol}: {score}")

        base = {"success": True, "score": score, "strength": strength_label(score)}

        if not meets_threshold(score):
            states.extend([PipelineState.BELOW_THRESHOLD, PipelineState.COMPLETED])
            logger.info(f"📭 Signal {signal.symbol} score {score} below threshold ({ALERT_THRESHOLD})")
            return PipelineResponse(
                200,
                {**base, "processed": False, "message": "Signal below alert threshold"},
                states,
            )

        channels = [c for c in self.channels if self.dispatcher.has_channel(c)]
        skipped = set(self.channels) - set(channels)
        if skipped:
            logger.warning(f"No relay configured for channels {sorted(skipped)}, skipping them")
        if not channels:
            states.append(PipelineState.COMPLETED)
            return PipelineResponse(
                200,
                {**base, "processed": False, "message": "No alert channels configured", "userCount": 0},
                states,
            )

        # All eligibility lookups finish before the first ledger write
        outcomes = [self._select(signal, score, channel) for channel in channels]
        active = [o for o in outcomes if o.recipient_count]

        if not active:
            states.append(PipelineState.COMPLETED)
            logger.info(f"📭 No eligible users for {signal.symbol}")
            return PipelineResponse(
                200,
                {
                    **base,
                    "processed": False,
                    "message": "No eligible users for alerts",
                    "userCount": 0,
                    "channels": {o.channel: o.summary() for o in outcomes},
                },
                states,
            )

        states.append(PipelineState.ELIGIBLE)
        for outcome in active:
            outcome.dispatch = self.dispatcher.dispatch(
                signal, score, outcome.batch.eligible, outcome.channel
            )
        states.append(PipelineState.DISPATCHED)

        for outcome in active:
            result = outcome.dispatch
            outcome.logged = self.ledger.record(
                signal.id,
                outcome.batch.eligible,
                outcome.channel,
                STATUS_SENT if result.success else STATUS_FAILED,
                error_message=result.error,
            )
        states.extend([PipelineState.LOGGED, PipelineState.COMPLETED])

        return PipelineResponse(200, self._summarize(signal, base, outcomes, active), states)

    def _select(self, signal: SignalRecord, score: int, channel: str) -> ChannelOutcome:
        try:
            batch = self.eligibility.select_eligible(score, channel, signal_id=signal.id)
        except DependencyError as e:
            logger.error(f"❌ Could not load {channel} subscribers: {e}")
            return ChannelOutcome(channel, error=str(e))
        return ChannelOutcome(channel, batch=batch)

    @staticmethod
    def _summarize(
        signal: SignalRecord,
        base: Dict[str, Any],
        outcomes: List[ChannelOutcome],
        active: List[ChannelOutcome],
    ) -> Dict[str, Any]:
        by_channel = {o.channel: o for o in outcomes}
        processed = any(o.dispatch.success for o in active)

        def sent(channel: str) -> bool:
            o = by_channel.get(channel)
            return bool(o and o.dispatch and o.dispatch.success)

        body = {
            **base,
            "processed": processed,
            "message": f"Alerts {'sent' if processed else 'failed'} for {signal.symbol}",
            "userCount": sum(o.recipient_count for o in active),
            "emailSent": sent(CHANNEL_EMAIL),
            "telegramSent": sent(CHANNEL_TELEGRAM),
            "channels": {o.channel: o.summary() for o in outcomes},
        }
        if not processed:
            body["error"] = "; ".join(
                f"{o.channel}: {o.dispatch.error}" for o in active if o.dispatch.error
            )
        return body


def create_pipeline(
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
    store: Optional[SubscriberStore] = None,
) -> AlertPipeline:
    """Wire an AlertPipeline from Settings."""
    settings = settings or Settings()
    store = store or SubscriberStore(Path(settings.db_path), timeout=settings.store_timeout)
    ledger = DeliveryLedger(store, timezone_name=settings.relay_timezone)
    eligibility = EligibilityFilter(
        store,
        ledger,
        default_max_alerts_per_day=settings.default_max_alerts_per_day,
        max_workers=settings.eligibility_workers,
        channel_tiers=settings.channel_tiers(),
    )
    dispatcher = DeliveryDispatcher(
        settings.relay_urls(),
        session=session,
        timeout=settings.relay_timeout,
    )
    return AlertPipeline(
        eligibility,
        dispatcher,
        ledger,
        channels=settings.channels,
        signals_table=settings.signals_table,
    )
