# ABOUTME: Groups canonical events per student into chronologically ordered journeys.
# ABOUTME: Uses a stable sort so equal timestamps keep their input order.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, Iterator, Tuple

from .normalization import events_to_frame
from .schemas import InteractionEvent


@dataclass(frozen=True)
class JourneyStep:
    content_id: str
    timestamp: datetime
    kind: str


@dataclass(frozen=True)
class Journey:
    """One student's content touches ordered by time. Never empty."""

    student_id: str
    steps: Tuple[JourneyStep, ...]

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"Journey for student '{self.student_id}' has no steps")

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[JourneyStep]:
        return iter(self.steps)

    @property
    def start(self) -> datetime:
        return self.steps[0].timestamp

    @property
    def end(self) -> datetime:
        return self.steps[-1].timestamp

    @property
    def span(self) -> timedelta:
        return self.end - self.start

    @property
    def content_ids(self) -> Tuple[str, ...]:
        return tuple(step.content_id for step in self.steps)


def build_journeys(events: Iterable[InteractionEvent]) -> Dict[str, Journey]:
    """
    Build a mapping of student id to that student's sorted journey.

    Steps:
    - Load events into a frame, keeping the input position.
    - Stable-sort by (student_id, timestamp) so ties preserve input order.
    - Group without re-sorting and freeze each group into a ``Journey``.
    """

    df = events_to_frame(events)
    if df.empty:
        return {}

    df = df.sort_values(["student_id", "timestamp"], kind="mergesort")

    journeys: Dict[str, Journey] = {}
    for student_id, student_df in df.groupby("student_id", sort=False):
        steps = tuple(
            JourneyStep(content_id=content_id, timestamp=ts.to_pydatetime(), kind=kind)
            for content_id, ts, kind in zip(
                student_df["content_id"], student_df["timestamp"], student_df["kind"]
            )
        )
        journeys[str(student_id)] = Journey(student_id=str(student_id), steps=steps)
    return journeys
