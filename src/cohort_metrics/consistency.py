# ABOUTME: Scores how regularly each student engages week over week.
# ABOUTME: Rewards a steady weekly cadence on a few repeated weekdays over random bursts.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional

import numpy as np

from src.event_stream.journeys import Journey
from src.event_stream.normalization import to_utc
from src.event_stream.settings import DEFAULT_THRESHOLDS, MetricThresholds

from .scoring import HIGH, LOW, MEDIUM, clamp_score, mean_score, score_band

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class StudentConsistency:
    student_id: str
    score: float
    weeks_observed: int
    weeks_active: int
    activity_ratio: float
    weekday_concentration: float
    pattern: str
    low_confidence: bool
    event_count: int


@dataclass
class ConsistencyReport:
    average_score: float = 0.0
    distribution: Dict[str, int] = field(default_factory=lambda: {HIGH: 0, MEDIUM: 0, LOW: 0})
    low_confidence_students: int = 0
    total_students: int = 0
    student_scores: List[StudentConsistency] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_students == 0

    def to_dict(self) -> Dict:
        return asdict(self)


def weekday_concentration(journey: Journey) -> float:
    """
    How tightly events cluster around one part of the week, in [0, 1].

    UTC weekdays are placed on a circle and the mean resultant length of their
    angles is returned, i.e. one minus the circular variance. A single weekday
    gives 1.0 and an even spread over all seven gives 0.0. Sunday and Monday
    count as neighbours.
    """

    angles = 2 * np.pi * np.array([step.timestamp.weekday() for step in journey]) / DAYS_PER_WEEK
    resultant = float(np.hypot(np.cos(angles).mean(), np.sin(angles).mean()))
    return min(1.0, max(0.0, resultant))


def score_student_consistency(
    journey: Journey,
    now: Optional[datetime] = None,
    thresholds: MetricThresholds = DEFAULT_THRESHOLDS,
) -> StudentConsistency:
    window = timedelta(days=thresholds.week_days)
    first = journey.start
    end = max(to_utc(now), journey.end) if now is not None else journey.end
    history = end - first

    weeks_observed = int(history // window) + 1
    weeks_active = len({int((step.timestamp - first) // window) for step in journey})
    ratio = weeks_active / weeks_observed

    concentration = 0.0
    if weeks_active >= thresholds.consistency_min_pattern_weeks:
        concentration = weekday_concentration(journey)

    raw = 100 * (
        thresholds.consistency_ratio_weight * ratio
        + thresholds.consistency_pattern_weight * concentration * ratio
    )
    if len(journey) == 1:
        raw = min(raw, thresholds.single_event_score_cap)
    score = clamp_score(raw)

    return StudentConsistency(
        student_id=journey.student_id,
        score=score,
        weeks_observed=weeks_observed,
        weeks_active=weeks_active,
        activity_ratio=round(ratio, 3),
        weekday_concentration=round(concentration, 3),
        pattern=score_band(score, thresholds),
        low_confidence=history < window,
        event_count=len(journey),
    )


def calculate_consistency(
    journeys: Mapping[str, Journey],
    now: Optional[datetime] = None,
    thresholds: Optional[MetricThresholds] = None,
) -> ConsistencyReport:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    if not journeys:
        return ConsistencyReport()

    if now is None:
        now = max(journey.end for journey in journeys.values())
    else:
        now = to_utc(now)

    scores = [score_student_consistency(journey, now, thresholds) for journey in journeys.values()]
    distribution = {HIGH: 0, MEDIUM: 0, LOW: 0}
    for student in scores:
        distribution[student.pattern] += 1

    ranked = sorted(scores, key=lambda s: (-s.score, s.student_id))
    return ConsistencyReport(
        average_score=mean_score(s.score for s in scores),
        distribution=distribution,
        low_confidence_students=sum(1 for s in scores if s.low_confidence),
        total_students=len(scores),
        student_scores=ranked[: thresholds.max_student_rows],
    )
