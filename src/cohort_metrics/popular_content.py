# ABOUTME: Ranks the content students engaged with most on a single UTC day.
# ABOUTME: Compares each item's engagement against the previous day to report a trend.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from src.event_stream.formatting import format_trend, humanize_content_id
from src.event_stream.normalization import events_to_frame
from src.event_stream.schemas import InteractionEvent, TRACKED_KINDS
from src.event_stream.settings import DEFAULT_THRESHOLDS, MetricThresholds


@dataclass(frozen=True)
class ContentPopularity:
    content_id: str
    name: str
    engagements: int
    unique_students: int
    trend: str


@dataclass
class PopularContentReport:
    day: Optional[str] = None
    content: List[ContentPopularity] = field(default_factory=list)
    total_engagements: int = 0
    total_unique_students: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total_engagements == 0

    def to_dict(self) -> Dict:
        return asdict(self)


def calculate_popular_content(
    events: Iterable[InteractionEvent],
    day: Optional[date] = None,
    thresholds: Optional[MetricThresholds] = None,
) -> PopularContentReport:
    """Top content for ``day`` (defaults to the UTC day of the latest event)."""

    thresholds = thresholds or DEFAULT_THRESHOLDS
    df = events_to_frame(events)
    if df.empty:
        return PopularContentReport()

    df = df[df["kind"].isin(TRACKED_KINDS)]
    if df.empty:
        return PopularContentReport()

    df = df.assign(day=df["timestamp"].dt.date)
    if day is None:
        day = df["timestamp"].max().date()

    today = df[df["day"] == day]
    if today.empty:
        return PopularContentReport(day=day.isoformat())

    yesterday_counts = df[df["day"] == day - timedelta(days=1)].groupby("content_id").size()
    grouped = (
        today.groupby("content_id")
        .agg(engagements=("student_id", "size"), unique_students=("student_id", "nunique"))
        .reset_index()
        .sort_values(["engagements", "unique_students", "content_id"], ascending=[False, False, True], kind="mergesort")
    )

    content = [
        ContentPopularity(
            content_id=row.content_id,
            name=humanize_content_id(row.content_id),
            engagements=int(row.engagements),
            unique_students=int(row.unique_students),
            trend=format_trend(int(row.engagements), int(yesterday_counts.get(row.content_id, 0))),
        )
        for row in grouped.head(thresholds.top_popular_content).itertuples(index=False)
    ]

    return PopularContentReport(
        day=day.isoformat(),
        content=content,
        total_engagements=int(len(today)),
        total_unique_students=int(today["student_id"].nunique()),
    )
