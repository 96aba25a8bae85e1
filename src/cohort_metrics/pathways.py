# ABOUTME: Mines student journeys for recurring content sequences and classifies them by outcome.
# ABOUTME: Produces top pathways, dead-end content, and high-success power combinations.

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

from src.event_stream.formatting import format_duration, humanize_content_id
from src.event_stream.journeys import Journey, JourneyStep
from src.event_stream.settings import DEFAULT_THRESHOLDS, MetricThresholds

from .scoring import percent

Sequence = Tuple[str, ...]


@dataclass(frozen=True)
class Pathway:
    sequence: Sequence
    sequence_names: Tuple[str, ...]
    completion_rate: float
    attempts: int
    completions: int
    student_count: int
    avg_time_to_continue_seconds: Optional[float]
    avg_time_to_continue: str


@dataclass(frozen=True)
class DeadEnd:
    content_id: str
    content_name: str
    drop_off_rate: float
    student_count: int
    dropped_students: int


@dataclass(frozen=True)
class PowerCombination:
    combination: Sequence
    combination_names: Tuple[str, ...]
    success_rate: float
    frequency: int
    student_count: int


@dataclass
class PathwayReport:
    top_pathways: List[Pathway] = field(default_factory=list)
    dead_ends: List[DeadEnd] = field(default_factory=list)
    power_combinations: List[PowerCombination] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.top_pathways or self.dead_ends or self.power_combinations)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class SequenceStats:
    """Occurrence counts for one ordered tuple of content ids."""

    attempts: int = 0
    completions: int = 0
    students: Set[str] = field(default_factory=set)
    continue_seconds: List[float] = field(default_factory=list)

    @property
    def completion_ratio(self) -> float:
        """Unrounded completion percentage, used for threshold checks."""
        return 100.0 * self.completions / self.attempts if self.attempts else 0.0

    @property
    def completion_rate(self) -> float:
        return percent(self.completions, self.attempts)


def mine_sequences(
    journeys: Mapping[str, Journey],
    min_length: int,
    max_length: int,
    max_journey_length: Optional[int] = None,
) -> Dict[Sequence, SequenceStats]:
    """
    Enumerate every contiguous subsequence of ``min_length..max_length`` steps.

    An occurrence completes when the journey has at least one more step after
    it; the elapsed time from the occurrence's first step to that next step is
    kept for averaging. Cost is O(students x journey length x lengths).
    """

    stats: Dict[Sequence, SequenceStats] = defaultdict(SequenceStats)
    for student_id in sorted(journeys):
        steps = _bounded_steps(journeys[student_id], max_journey_length)
        content_ids = [step.content_id for step in steps]
        total = len(steps)
        for length in range(min_length, min(max_length, total) + 1):
            for start in range(total - length + 1):
                entry = stats[tuple(content_ids[start : start + length])]
                entry.attempts += 1
                entry.students.add(student_id)
                following = start + length
                if following < total:
                    entry.completions += 1
                    elapsed = steps[following].timestamp - steps[start].timestamp
                    entry.continue_seconds.append(elapsed.total_seconds())
    return dict(stats)


def find_top_pathways(
    sequence_stats: Mapping[Sequence, SequenceStats], thresholds: MetricThresholds
) -> List[Pathway]:
    pathways = []
    for sequence, entry in sequence_stats.items():
        if not thresholds.pathway_min_length <= len(sequence) <= thresholds.pathway_max_length:
            continue
        if entry.attempts < thresholds.pathway_min_attempts:
            continue
        avg_seconds = (
            sum(entry.continue_seconds) / len(entry.continue_seconds) if entry.continue_seconds else None
        )
        pathways.append(
            Pathway(
                sequence=sequence,
                sequence_names=tuple(humanize_content_id(c) for c in sequence),
                completion_rate=entry.completion_rate,
                attempts=entry.attempts,
                completions=entry.completions,
                student_count=len(entry.students),
                avg_time_to_continue_seconds=avg_seconds,
                avg_time_to_continue=format_duration(avg_seconds),
            )
        )
    pathways.sort(key=lambda p: (-p.completion_rate, -p.attempts, -p.student_count, p.sequence))
    return pathways[: thresholds.top_pathways]


def find_power_combinations(
    sequence_stats: Mapping[Sequence, SequenceStats], thresholds: MetricThresholds
) -> List[PowerCombination]:
    combinations = []
    for sequence, entry in sequence_stats.items():
        if len(sequence) != thresholds.power_combination_length:
            continue
        if entry.attempts < thresholds.power_combination_min_attempts:
            continue
        if entry.completion_ratio <= thresholds.power_combination_min_success:
            continue
        combinations.append(
            PowerCombination(
                combination=sequence,
                combination_names=tuple(humanize_content_id(c) for c in sequence),
                success_rate=entry.completion_rate,
                frequency=entry.attempts,
                student_count=len(entry.students),
            )
        )
    combinations.sort(key=lambda c: (-c.success_rate, -c.frequency, c.combination))
    return combinations[: thresholds.top_power_combinations]


def find_dead_ends(journeys: Mapping[str, Journey], thresholds: MetricThresholds) -> List[DeadEnd]:
    """Content after which most students who touched it never had another event."""

    touched: Dict[str, Set[str]] = defaultdict(set)
    continued: Dict[str, Set[str]] = defaultdict(set)
    for student_id, journey in journeys.items():
        steps = _bounded_steps(journey, thresholds.max_journey_length)
        last = len(steps) - 1
        for index, step in enumerate(steps):
            touched[step.content_id].add(student_id)
            if index < last:
                continued[step.content_id].add(student_id)

    dead_ends = []
    for content_id, students in touched.items():
        if len(students) < thresholds.dead_end_min_students:
            continue
        dropped = len(students) - len(continued[content_id])
        if 100.0 * dropped / len(students) <= thresholds.dead_end_min_drop_off:
            continue
        dead_ends.append(
            DeadEnd(
                content_id=content_id,
                content_name=humanize_content_id(content_id),
                drop_off_rate=percent(dropped, len(students)),
                student_count=len(students),
                dropped_students=dropped,
            )
        )
    dead_ends.sort(key=lambda d: (-d.drop_off_rate, -d.student_count, d.content_id))
    return dead_ends[: thresholds.top_dead_ends]


def calculate_content_pathways(
    journeys: Mapping[str, Journey], thresholds: Optional[MetricThresholds] = None
) -> PathwayReport:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    if not journeys:
        return PathwayReport()

    sequence_stats = mine_sequences(
        journeys,
        min_length=min(thresholds.pathway_min_length, thresholds.power_combination_length),
        max_length=max(thresholds.pathway_max_length, thresholds.power_combination_length),
        max_journey_length=thresholds.max_journey_length,
    )
    return PathwayReport(
        top_pathways=find_top_pathways(sequence_stats, thresholds),
        dead_ends=find_dead_ends(journeys, thresholds),
        power_combinations=find_power_combinations(sequence_stats, thresholds),
    )


def _bounded_steps(journey: Journey, max_journey_length: Optional[int]) -> Tuple[JourneyStep, ...]:
    if max_journey_length is None or len(journey) <= max_journey_length:
        return journey.steps
    return journey.steps[-max_journey_length:]
