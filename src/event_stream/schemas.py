# ABOUTME: Defines the canonical interaction event shared by every engagement analyzer.
# ABOUTME: Keeps the closed set of event kinds in one place.

from dataclasses import dataclass
from datetime import datetime

ACTIVITY = "activity"
ENGAGEMENT = "engagement"
SUBSCRIPTION = "subscription"

EVENT_KINDS = (ACTIVITY, ENGAGEMENT, SUBSCRIPTION)
TRACKED_KINDS = frozenset({ACTIVITY, ENGAGEMENT})


@dataclass(frozen=True)
class InteractionEvent:
    """Canonical, normalized interaction event with a UTC timestamp."""

    student_id: str
    content_id: str
    kind: str
    timestamp: datetime
