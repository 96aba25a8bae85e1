# ABOUTME: Generates deterministic raw event records for a cohort with known engagement tiers.
# ABOUTME: Feeds demos and tests with high, medium, and low engagement students.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import numpy as np

from src.event_stream.schemas import ACTIVITY, ENGAGEMENT, SUBSCRIPTION

CATALOGUE = (
    "course_introduction",
    "module_1_basics",
    "module_2_advanced",
    "module_3_mastery",
    "quiz_checkpoint_1",
    "quiz_checkpoint_2",
    "resource_library",
    "community_forum",
    "live_session",
    "bonus_content",
)
ENGAGEMENT_CONTENT = frozenset({"live_session", "module_2_advanced"})
MON_WED_FRI = (0, 2, 4)

# (share of weeks active, onset delay range in hours)
TIER_PROFILES = {
    "high": (0.9, (1.0, 5.0)),
    "medium": (0.6, (8.0, 20.0)),
    "low": (0.3, (30.0, 60.0)),
}
DEFAULT_COHORT_START = datetime(2024, 1, 1, tzinfo=timezone.utc)  # a Monday


@dataclass
class SyntheticCohort:
    records: List[Dict]
    tiers: Dict[str, str]


def generate_cohort(
    students: int = 50,
    weeks: int = 8,
    seed: int = 42,
    start: Optional[datetime] = None,
) -> SyntheticCohort:
    """
    Build shuffled raw records in the dashboard's event format.

    High-tier students follow the catalogue in order on Mon/Wed/Fri for ~90% of
    weeks and show up daily in their first week; medium-tier students pick
    random content on random days for ~60% of weeks; low-tier students appear
    in ~30% of weeks.
    """

    rng = np.random.default_rng(seed)
    start = start or DEFAULT_COHORT_START
    records: List[Dict] = []
    tiers: Dict[str, str] = {}

    for index in range(students):
        student_id = f"student_{index:03d}"
        draw = rng.random()
        tier = "high" if draw > 0.7 else "medium" if draw > 0.4 else "low"
        tiers[student_id] = tier
        week_share, (min_delay, max_delay) = TIER_PROFILES[tier]

        first_activity = start + timedelta(hours=10)
        joined = first_activity - timedelta(hours=float(rng.uniform(min_delay, max_delay)))
        records.append(_record(student_id, joined, SUBSCRIPTION, "membership_started", None))

        timestamps: List[datetime] = []
        if tier == "high":
            timestamps.extend(first_activity + timedelta(days=day) for day in range(7))

        active_weeks = max(1, int(weeks * week_share))
        chosen = sorted(rng.choice(np.arange(1, weeks), size=min(active_weeks, weeks - 1), replace=False))
        for week in ([0] if tier != "high" else []) + [int(w) for w in chosen]:
            week_start = start + timedelta(weeks=week)
            for slot in range(int(rng.integers(2, 6))):
                if tier == "high":
                    day = MON_WED_FRI[slot % 3]
                else:
                    day = int(rng.integers(0, 7))
                timestamps.append(week_start + timedelta(days=day, hours=int(rng.integers(10, 18)), minutes=slot))

        timestamps.sort()
        for position, ts in enumerate(timestamps):
            if tier == "high":
                content_id = CATALOGUE[position % len(CATALOGUE)]
            else:
                content_id = CATALOGUE[int(rng.integers(0, len(CATALOGUE)))]
            kind = ENGAGEMENT if content_id in ENGAGEMENT_CONTENT else ACTIVITY
            records.append(_record(student_id, ts, kind, "content_view", content_id))

    order = rng.permutation(len(records))
    return SyntheticCohort(records=[records[i] for i in order], tiers=tiers)


def _record(student_id: str, ts: datetime, kind: str, action: str, content_id: Optional[str]) -> Dict:
    event_data = {"action": action}
    if content_id is not None:
        event_data["experience_id"] = content_id
    return {
        "entity_id": student_id,
        "created_at": ts.isoformat().replace("+00:00", "Z"),
        "event_type": kind,
        "event_data": event_data,
    }
