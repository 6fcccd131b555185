"""Evaluation package for heuristic scoring and metric aggregation.

Provides quality, relevance and coherence heuristics for single
responses, and totals/averages over whole result sets.
"""

from __future__ import annotations

from atelier.evaluation.metrics import (
    MetricsSummary,
    TemplateSummary,
    build_test_run,
    compare_results,
    group_by_test_case,
    summarize,
    summarize_by_template,
)
from atelier.evaluation.scoring import (
    QualityScores,
    calculate_coherence_score,
    calculate_quality_score,
    calculate_relevance_score,
    score_response,
)

__all__ = [
    "MetricsSummary",
    "QualityScores",
    "TemplateSummary",
    "build_test_run",
    "calculate_coherence_score",
    "calculate_quality_score",
    "calculate_relevance_score",
    "compare_results",
    "group_by_test_case",
    "score_response",
    "summarize",
    "summarize_by_template",
]
