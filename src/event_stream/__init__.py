# ABOUTME: Makes the shared event-stream package importable across analyzers.
# ABOUTME: Re-exports the canonical event, journey builder, and threshold config.

from .schemas import InteractionEvent
from .normalization import UnparseableEvent, normalize_event, normalize_events
from .journeys import Journey, JourneyStep, build_journeys
from .settings import DEFAULT_THRESHOLDS, MetricThresholds, load_thresholds

__all__ = [
    "InteractionEvent",
    "UnparseableEvent",
    "normalize_event",
    "normalize_events",
    "Journey",
    "JourneyStep",
    "build_journeys",
    "DEFAULT_THRESHOLDS",
    "MetricThresholds",
    "load_thresholds",
]
