# ABOUTME: Centralizes the tunable thresholds shared by every engagement analyzer.
# ABOUTME: Loads overrides from YAML so cut-offs can change without touching analyzer code.

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import yaml

UNKNOWN_CONTENT_ID = "unknown"
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class MetricThresholds:
    """Window sizes, minimum supports and score weights for all metrics."""

    unknown_content_id: str = UNKNOWN_CONTENT_ID

    # Consistency
    week_days: int = 7
    consistency_ratio_weight: float = 0.90
    consistency_pattern_weight: float = 0.10
    consistency_min_pattern_weeks: int = 2
    single_event_score_cap: float = 39.0
    max_student_rows: int = 100

    # Shared score bands
    high_band_min: float = 70.0
    medium_band_min: float = 40.0

    # Breakthrough
    breakthrough_window_before_days: int = 3
    breakthrough_window_after_days: int = 3
    breakthrough_spike_ratio: float = 0.40
    breakthrough_min_history_days: int = 7
    stagnant_after_days: int = 14
    top_triggers: int = 5
    max_stagnant_rows: int = 20

    # Pathways
    pathway_min_length: int = 2
    pathway_max_length: int = 5
    pathway_min_attempts: int = 3
    top_pathways: int = 10
    dead_end_min_students: int = 3
    dead_end_min_drop_off: float = 50.0
    top_dead_ends: int = 10
    power_combination_length: int = 3
    power_combination_min_attempts: int = 5
    power_combination_min_success: float = 80.0
    top_power_combinations: int = 5
    max_journey_length: Optional[int] = None

    # Commitment
    commitment_window_days: int = 7
    commitment_fast_onset_hours: float = 6.0
    commitment_slow_onset_hours: float = 24.0
    commitment_stalled_onset_hours: float = 48.0
    commitment_latency_weight: float = 0.40
    commitment_frequency_weight: float = 0.35
    commitment_breadth_weight: float = 0.25
    commitment_breadth_target: int = 5
    commitment_long_gap_hours: float = 48.0
    commitment_min_active_days: int = 3
    commitment_min_breadth: int = 2
    commitment_min_events: int = 3
    max_at_risk_rows: int = 20

    # Popular content
    top_popular_content: int = 10


DEFAULT_THRESHOLDS = MetricThresholds()


def thresholds_from_mapping(values: Mapping[str, Any], base: MetricThresholds = DEFAULT_THRESHOLDS) -> MetricThresholds:
    """Overlay a mapping of overrides on top of ``base``."""

    known = {f.name for f in fields(MetricThresholds)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown threshold keys: {', '.join(unknown)}")
    return replace(base, **dict(values))


def load_thresholds(config_path: Optional[Union[str, Path]] = None) -> MetricThresholds:
    """
    Load thresholds from a YAML file.

    The file may hold the overrides at the top level or under a ``thresholds``
    key. A missing path returns the defaults.
    """

    if config_path is None:
        return DEFAULT_THRESHOLDS

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}

    if not isinstance(cfg, dict):
        raise ValueError(f"Expected a mapping in {config_path}, got {type(cfg).__name__}")
    overrides = cfg.get("thresholds", cfg)
    if not isinstance(overrides, dict):
        raise ValueError(f"Expected 'thresholds' to be a mapping in {config_path}")
    return thresholds_from_mapping(overrides)
