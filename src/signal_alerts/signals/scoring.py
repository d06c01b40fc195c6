# SPDX-License-Identifier: MIT
# src/signal_alerts/signals/scoring.py
"""
Weighted aggregation of per-timeframe sub-scores into one final score.

Missing timeframes drop out of both numerator and denominator, so a signal
scored on fewer horizons is re-normalized rather than penalized.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional

TIMEFRAME_WEIGHTS = {
    "1H": Decimal("0.20"),
    "4H": Decimal("0.30"),
    "1D": Decimal("0.30"),
    "1W": Decimal("0.20"),
}
TIMEFRAMES = tuple(TIMEFRAME_WEIGHTS)

ALERT_THRESHOLD = 80


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def aggregate(timeframe_scores: Optional[Mapping[str, Any]]) -> int:
    """
    Combine per-timeframe scores into an integer in [0, 100].

    Rounds half-up. Returns 0 when no timeframe is present. Unknown
    timeframe labels and non-numeric values are ignored.
    """
    if not timeframe_scores:
        return 0

    total = Decimal(0)
    total_weight = Decimal(0)
    for timeframe, weight in TIMEFRAME_WEIGHTS.items():
        score = _to_decimal(timeframe_scores.get(timeframe))
        if score is None:
            continue
        total += score * weight
        total_weight += weight

    if total_weight == 0:
        return 0

    final = int((total / total_weight).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(0, min(100, final))


def strength_label(final_score: int) -> str:
    if final_score >= 90:
        return "very_strong"
    if final_score >= 80:
        return "strong"
    if final_score >= 70:
        return "moderate"
    return "weak"


def meets_threshold(final_score: int) -> bool:
    return final_score >= ALERT_THRESHOLD
