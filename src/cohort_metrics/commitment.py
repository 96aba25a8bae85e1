# ABOUTME: Scores early-lifecycle commitment from each student's first week of activity.
# ABOUTME: Combines onset latency, active-day count, and content breadth into a retention-risk score.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional

from src.event_stream.journeys import Journey, JourneyStep
from src.event_stream.normalization import to_utc
from src.event_stream.schemas import SUBSCRIPTION, TRACKED_KINDS
from src.event_stream.settings import DEFAULT_THRESHOLDS, SECONDS_PER_HOUR, MetricThresholds

from .scoring import AT_RISK, HIGH, MEDIUM, clamp_score, mean_score, score_band

FAST_ONSET_FACTOR = 1.0
SLOW_ONSET_FACTOR = 0.45
STALLED_ONSET_FACTOR = 0.2

NO_EARLY_ACTIVITY = "No activity in first 7 days"
SLOW_START = "Slow to start (took >24 hours)"
LOW_FREQUENCY = "Low engagement frequency"
LIMITED_EXPLORATION = "Limited content exploration"
FEW_ACTIVITIES = "Very few activities"
LONG_GAPS = "Long gaps between activities"
LOW_OVERALL = "Low overall engagement"


@dataclass(frozen=True)
class StudentCommitment:
    student_id: str
    score: float
    band: str
    onset_latency_hours: Optional[float]
    active_days: int
    breadth: int
    event_count: int
    risk_factors: List[str] = field(default_factory=list)


@dataclass
class CommitmentReport:
    average_score: float = 0.0
    distribution: Dict[str, int] = field(default_factory=lambda: {HIGH: 0, MEDIUM: 0, AT_RISK: 0})
    total_students: int = 0
    at_risk_students: List[StudentCommitment] = field(default_factory=list)
    student_scores: List[StudentCommitment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_students == 0

    def to_dict(self) -> Dict:
        return asdict(self)


def resolve_account_start(journey: Journey, explicit: Optional[datetime] = None) -> datetime:
    """Explicit start, else the earliest subscription event, else the first event."""

    if explicit is not None:
        return to_utc(explicit)
    for step in journey:
        if step.kind == SUBSCRIPTION:
            return step.timestamp
    return journey.start


def score_student_commitment(
    student_id: str,
    journey: Optional[Journey],
    account_start: Optional[datetime] = None,
    thresholds: MetricThresholds = DEFAULT_THRESHOLDS,
) -> StudentCommitment:
    if journey is None:
        return _inactive(student_id, thresholds)

    start = resolve_account_start(journey, account_start)
    window_end = start + timedelta(days=thresholds.commitment_window_days)
    tracked = [
        step for step in journey if step.kind in TRACKED_KINDS and start <= step.timestamp <= window_end
    ]
    if not tracked:
        return _inactive(student_id, thresholds)

    latency_hours = (tracked[0].timestamp - start).total_seconds() / SECONDS_PER_HOUR
    active_days = min(thresholds.commitment_window_days, len({step.timestamp.date() for step in tracked}))
    breadth = len({step.content_id for step in tracked if step.content_id != thresholds.unknown_content_id})

    raw = 100 * (
        thresholds.commitment_latency_weight * _onset_factor(latency_hours, thresholds)
        + thresholds.commitment_frequency_weight * (active_days - 1) / (thresholds.commitment_window_days - 1)
        + thresholds.commitment_breadth_weight
        * min(breadth, thresholds.commitment_breadth_target)
        / thresholds.commitment_breadth_target
    )
    score = clamp_score(raw)
    band = score_band(score, thresholds, low_label=AT_RISK)

    return StudentCommitment(
        student_id=student_id,
        score=score,
        band=band,
        onset_latency_hours=round(latency_hours, 2),
        active_days=active_days,
        breadth=breadth,
        event_count=len(tracked),
        risk_factors=_risk_factors(tracked, latency_hours, active_days, breadth, band, thresholds),
    )


def calculate_commitment(
    journeys: Mapping[str, Journey],
    account_starts: Optional[Mapping[str, datetime]] = None,
    thresholds: Optional[MetricThresholds] = None,
) -> CommitmentReport:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    account_starts = account_starts or {}
    student_ids = sorted(set(journeys) | set(account_starts))
    if not student_ids:
        return CommitmentReport()

    scores = [
        score_student_commitment(sid, journeys.get(sid), account_starts.get(sid), thresholds)
        for sid in student_ids
    ]
    distribution = {HIGH: 0, MEDIUM: 0, AT_RISK: 0}
    for student in scores:
        distribution[student.band] += 1

    at_risk = sorted((s for s in scores if s.band == AT_RISK), key=lambda s: (s.score, s.student_id))
    return CommitmentReport(
        average_score=mean_score(s.score for s in scores),
        distribution=distribution,
        total_students=len(scores),
        at_risk_students=at_risk[: thresholds.max_at_risk_rows],
        student_scores=sorted(scores, key=lambda s: (-s.score, s.student_id))[: thresholds.max_student_rows],
    )


def _onset_factor(latency_hours: float, thresholds: MetricThresholds) -> float:
    if latency_hours < thresholds.commitment_fast_onset_hours:
        return FAST_ONSET_FACTOR
    if latency_hours < thresholds.commitment_slow_onset_hours:
        return SLOW_ONSET_FACTOR
    if latency_hours < thresholds.commitment_stalled_onset_hours:
        return STALLED_ONSET_FACTOR
    return 0.0


def _risk_factors(
    tracked: List[JourneyStep],
    latency_hours: float,
    active_days: int,
    breadth: int,
    band: str,
    thresholds: MetricThresholds,
) -> List[str]:
    factors = []
    if latency_hours > thresholds.commitment_slow_onset_hours:
        factors.append(SLOW_START)
    if active_days < thresholds.commitment_min_active_days:
        factors.append(LOW_FREQUENCY)
    if breadth < thresholds.commitment_min_breadth:
        factors.append(LIMITED_EXPLORATION)
    if len(tracked) < thresholds.commitment_min_events:
        factors.append(FEW_ACTIVITIES)

    long_gap = timedelta(hours=thresholds.commitment_long_gap_hours)
    if any(later.timestamp - earlier.timestamp > long_gap for earlier, later in zip(tracked, tracked[1:])):
        factors.append(LONG_GAPS)

    if not factors and band == AT_RISK:
        factors.append(LOW_OVERALL)
    return factors


def _inactive(student_id: str, thresholds: MetricThresholds) -> StudentCommitment:
    return StudentCommitment(
        student_id=student_id,
        score=0.0,
        band=score_band(0.0, thresholds, low_label=AT_RISK),
        onset_latency_hours=None,
        active_days=0,
        breadth=0,
        event_count=0,
        risk_factors=[NO_EARLY_ACTIVITY],
    )
