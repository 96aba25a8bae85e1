# ABOUTME: Exposes the cohort engagement analyzers and the all-metrics runner.
# ABOUTME: Each analyzer is a pure function of shared, read-only student journeys.

from .consistency import calculate_consistency
from .breakthrough import calculate_breakthroughs
from .pathways import calculate_content_pathways
from .commitment import calculate_commitment
from .popular_content import calculate_popular_content
from .dashboard import compute_dashboard_metrics

__all__ = [
    "calculate_consistency",
    "calculate_breakthroughs",
    "calculate_content_pathways",
    "calculate_commitment",
    "calculate_popular_content",
    "compute_dashboard_metrics",
]
