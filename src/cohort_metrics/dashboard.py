# ABOUTME: Runs every engagement analyzer over one tenant's raw event records.
# ABOUTME: Normalizes and builds journeys once, then shares them read-only across analyzers.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional

from src.event_stream.journeys import build_journeys
from src.event_stream.normalization import normalize_events, to_utc
from src.event_stream.settings import DEFAULT_THRESHOLDS, MetricThresholds

from .breakthrough import BreakthroughReport, calculate_breakthroughs
from .commitment import CommitmentReport, calculate_commitment
from .consistency import ConsistencyReport, calculate_consistency
from .pathways import PathwayReport, calculate_content_pathways
from .popular_content import PopularContentReport, calculate_popular_content

logger = logging.getLogger(__name__)


@dataclass
class DashboardMetrics:
    total_events: int
    dropped_records: int
    total_students: int
    consistency: ConsistencyReport
    breakthroughs: BreakthroughReport
    pathways: PathwayReport
    commitment: CommitmentReport
    popular_content: PopularContentReport

    @property
    def is_empty(self) -> bool:
        return self.total_events == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_events": self.total_events,
            "dropped_records": self.dropped_records,
            "total_students": self.total_students,
            "consistency": self.consistency.to_dict(),
            "breakthroughs": self.breakthroughs.to_dict(),
            "pathways": self.pathways.to_dict(),
            "commitment": self.commitment.to_dict(),
            "popular_content": self.popular_content.to_dict(),
        }


def compute_dashboard_metrics(
    records: Iterable[Mapping[str, Any]],
    now: Optional[datetime] = None,
    account_starts: Optional[Mapping[str, datetime]] = None,
    thresholds: Optional[MetricThresholds] = None,
) -> DashboardMetrics:
    thresholds = thresholds or DEFAULT_THRESHOLDS
    if now is not None:
        now = to_utc(now)
    records = list(records)
    events = normalize_events(records)
    journeys = build_journeys(events)
    logger.info("Computing metrics for %d events across %d students", len(events), len(journeys))

    return DashboardMetrics(
        total_events=len(events),
        dropped_records=len(records) - len(events),
        total_students=len(journeys),
        consistency=calculate_consistency(journeys, now=now, thresholds=thresholds),
        breakthroughs=calculate_breakthroughs(journeys, now=now, thresholds=thresholds),
        pathways=calculate_content_pathways(journeys, thresholds=thresholds),
        commitment=calculate_commitment(journeys, account_starts=account_starts, thresholds=thresholds),
        popular_content=calculate_popular_content(
            events, day=now.date() if now is not None else None, thresholds=thresholds
        ),
    )
