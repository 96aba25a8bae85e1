# ABOUTME: Shared score banding and rounding used by the per-student analyzers.
# ABOUTME: Keeps the high/medium/low cut-offs consistent across reports.

from __future__ import annotations

from typing import Iterable

from src.event_stream.settings import MetricThresholds

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
AT_RISK = "at_risk"


def score_band(score: float, thresholds: MetricThresholds, low_label: str = LOW) -> str:
    if score >= thresholds.high_band_min:
        return HIGH
    if score >= thresholds.medium_band_min:
        return MEDIUM
    return low_label


def clamp_score(raw: float) -> float:
    return round(min(100.0, max(0.0, raw)), 1)


def percent(numerator: float, denominator: float) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * 100, 1)


def mean_score(scores: Iterable[float]) -> float:
    values = list(scores)
    if not values:
        return 0.0
    return round(sum(values) / len(values), 1)
