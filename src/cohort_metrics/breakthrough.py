# ABOUTME: Detects "aha moments": engagement events after which a student's activity spikes.
# ABOUTME: Aggregates breakthrough rate, trigger content, timing, and stagnant students per cohort.

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional

from src.event_stream.formatting import format_duration, humanize_content_id
from src.event_stream.journeys import Journey
from src.event_stream.normalization import to_utc
from src.event_stream.schemas import ENGAGEMENT
from src.event_stream.settings import DEFAULT_THRESHOLDS, SECONDS_PER_DAY, MetricThresholds

from .scoring import percent

TIME_TO_BREAKTHROUGH_BUCKETS = (
    ("<1d", 1),
    ("1-3d", 3),
    ("3-7d", 7),
    ("1-2w", 14),
)
OPEN_ENDED_BUCKET = ">2w"


@dataclass(frozen=True)
class StudentBreakthrough:
    student_id: str
    content_id: str
    content_name: str
    breakthrough_at: str
    time_to_breakthrough_seconds: float
    time_to_breakthrough: str
    events_before: int
    events_after: int
    spike_percent: float


@dataclass(frozen=True)
class BreakthroughTrigger:
    content_id: str
    content_name: str
    student_count: int
    avg_spike_percent: float


@dataclass(frozen=True)
class StagnantStudent:
    student_id: str
    days_since_last_activity: int


@dataclass
class BreakthroughReport:
    eligible_students: int = 0
    breakthrough_students: int = 0
    breakthrough_rate: float = 0.0
    average_time_to_breakthrough: str = "N/A"
    breakthroughs: List[StudentBreakthrough] = field(default_factory=list)
    top_triggers: List[BreakthroughTrigger] = field(default_factory=list)
    time_to_breakthrough_distribution: Dict[str, int] = field(
        default_factory=lambda: {label: 0 for label in _bucket_labels()}
    )
    stagnant_students: int = 0
    stagnant_students_list: List[StagnantStudent] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.eligible_students == 0 and self.stagnant_students == 0

    def to_dict(self) -> Dict:
        return asdict(self)


def detect_breakthrough(
    journey: Journey, thresholds: MetricThresholds = DEFAULT_THRESHOLDS
) -> Optional[StudentBreakthrough]:
    """
    Return the earliest engagement event followed by an activity spike.

    ``events_before`` counts events in ``[t - before_window, t]`` (the trigger
    itself included) and ``events_after`` counts events in ``(t, t + after_window]``.
    A spike needs ``after >= before * (1 + spike_ratio)`` and at least one event
    after; an empty baseline passes as soon as anything follows.
    """

    before_window = timedelta(days=thresholds.breakthrough_window_before_days)
    after_window = timedelta(days=thresholds.breakthrough_window_after_days)
    times = [step.timestamp for step in journey]

    for step in journey:
        if step.kind != ENGAGEMENT:
            continue
        t = step.timestamp
        before = bisect_right(times, t) - bisect_left(times, t - before_window)
        after = bisect_right(times, t + after_window) - bisect_right(times, t)
        if after <= 0:
            continue
        if before and after < before * (1 + thresholds.breakthrough_spike_ratio):
            continue

        elapsed = t - journey.start
        return StudentBreakthrough(
            student_id=journey.student_id,
            content_id=step.content_id,
            content_name=humanize_content_id(step.content_id),
            breakthrough_at=t.isoformat(),
            time_to_breakthrough_seconds=elapsed.total_seconds(),
            time_to_breakthrough=format_duration(elapsed),
            events_before=before,
            events_after=after,
            spike_percent=percent(after - before, before) if before else 100.0,
        )
    return None


def calculate_breakthroughs(
    journeys: Mapping[str, Journey],
    now: Optional[datetime] = None,
    thresholds: Optional[MetricThresholds] = None,
) -> BreakthroughReport:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    if not journeys:
        return BreakthroughReport()

    if now is None:
        now = max(journey.end for journey in journeys.values())
    else:
        now = to_utc(now)

    min_history = timedelta(days=thresholds.breakthrough_min_history_days)
    eligible = [journeys[sid] for sid in sorted(journeys) if journeys[sid].span >= min_history]

    breakthroughs: List[StudentBreakthrough] = []
    for journey in eligible:
        found = detect_breakthrough(journey, thresholds)
        if found is not None:
            breakthroughs.append(found)

    stagnant = _stagnant_students(journeys, now, thresholds)
    elapsed = [b.time_to_breakthrough_seconds for b in breakthroughs]

    return BreakthroughReport(
        eligible_students=len(eligible),
        breakthrough_students=len(breakthroughs),
        breakthrough_rate=percent(len(breakthroughs), len(eligible)),
        average_time_to_breakthrough=format_duration(sum(elapsed) / len(elapsed)) if elapsed else "N/A",
        breakthroughs=breakthroughs,
        top_triggers=_rank_triggers(breakthroughs)[: thresholds.top_triggers],
        time_to_breakthrough_distribution=_bucket_times(elapsed),
        stagnant_students=len(stagnant),
        stagnant_students_list=stagnant[: thresholds.max_stagnant_rows],
    )


def _rank_triggers(breakthroughs: List[StudentBreakthrough]) -> List[BreakthroughTrigger]:
    spikes: Dict[str, List[float]] = defaultdict(list)
    for b in breakthroughs:
        spikes[b.content_id].append(b.spike_percent)

    triggers = [
        BreakthroughTrigger(
            content_id=content_id,
            content_name=humanize_content_id(content_id),
            student_count=len(values),
            avg_spike_percent=round(sum(values) / len(values), 1),
        )
        for content_id, values in spikes.items()
    ]
    return sorted(triggers, key=lambda t: (-t.student_count, -t.avg_spike_percent, t.content_id))


def _bucket_labels() -> List[str]:
    return [label for label, _ in TIME_TO_BREAKTHROUGH_BUCKETS] + [OPEN_ENDED_BUCKET]


def _bucket_times(elapsed_seconds: List[float]) -> Dict[str, int]:
    buckets = {label: 0 for label in _bucket_labels()}
    for seconds in elapsed_seconds:
        days = seconds / SECONDS_PER_DAY
        for label, upper in TIME_TO_BREAKTHROUGH_BUCKETS:
            if days < upper:
                buckets[label] += 1
                break
        else:
            buckets[OPEN_ENDED_BUCKET] += 1
    return buckets


def _stagnant_students(
    journeys: Mapping[str, Journey], now: datetime, thresholds: MetricThresholds
) -> List[StagnantStudent]:
    cutoff = timedelta(days=thresholds.stagnant_after_days)
    stagnant = [
        StagnantStudent(student_id=journey.student_id, days_since_last_activity=(now - journey.end).days)
        for journey in journeys.values()
        if now - journey.end > cutoff
    ]
    return sorted(stagnant, key=lambda s: (-s.days_since_last_activity, s.student_id))
