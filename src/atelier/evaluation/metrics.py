"""Aggregate metrics over batch results.

Reduces a result list into headline totals and averages, packages a
finished batch as a TestRun, and groups results for side-by-side
comparison of templates on the same test case.
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel

from atelier.models.result import (
    BatchTestResult,
    RunConfig,
    RunSummary,
    TestRun,
)


class MetricsSummary(BaseModel):
    """Totals and averages over a result list (all zero when empty)."""

    total_tests: int = 0
    avg_response_time_ms: float = 0.0
    total_response_time_ms: float = 0.0
    avg_tokens: float = 0.0
    total_tokens: int = 0
    total_cost: float = 0.0


class TemplateSummary(BaseModel):
    """Per-template averages; score averages are None when never scored."""

    template_name: str
    total_tests: int
    avg_response_time_ms: float
    avg_quality_score: float | None = None
    avg_relevance_score: float | None = None
    avg_coherence_score: float | None = None


def summarize(results: Sequence[BatchTestResult]) -> MetricsSummary:
    """Reduce results to totals and averages.

    Missing token data counts as 0 and missing cost as 0.0. An empty list
    gives an all-zero summary rather than dividing by zero.
    """
    if not results:
        return MetricsSummary()

    n = len(results)
    total_time = sum(r.metrics.response_time_ms for r in results)
    total_tokens = sum(r.metrics.tokens.total if r.metrics.tokens else 0 for r in results)
    total_cost = sum(r.metrics.cost or 0.0 for r in results)

    return MetricsSummary(
        total_tests=n,
        avg_response_time_ms=total_time / n,
        total_response_time_ms=total_time,
        avg_tokens=total_tokens / n,
        total_tokens=total_tokens,
        total_cost=round(total_cost, 6),
    )


def _mean(values: list[int]) -> float | None:
    return sum(values) / len(values) if values else None


def summarize_by_template(results: Sequence[BatchTestResult]) -> list[TemplateSummary]:
    """Per-template averages, in order of first appearance."""
    groups: dict[str, list[BatchTestResult]] = {}
    for result in results:
        groups.setdefault(result.prompt_template_name, []).append(result)

    summaries: list[TemplateSummary] = []
    for name, group in groups.items():
        summaries.append(
            TemplateSummary(
                template_name=name,
                total_tests=len(group),
                avg_response_time_ms=sum(r.metrics.response_time_ms for r in group) / len(group),
                avg_quality_score=_mean(
                    [r.metrics.quality_score for r in group if r.metrics.quality_score is not None]
                ),
                avg_relevance_score=_mean(
                    [r.metrics.relevance_score for r in group if r.metrics.relevance_score is not None]
                ),
                avg_coherence_score=_mean(
                    [r.metrics.coherence_score for r in group if r.metrics.coherence_score is not None]
                ),
            )
        )
    return summaries


def group_by_test_case(
    results: Sequence[BatchTestResult],
) -> dict[str, list[BatchTestResult]]:
    """Group results by test case id, preserving result order."""
    groups: dict[str, list[BatchTestResult]] = {}
    for result in results:
        groups.setdefault(result.test_case_id, []).append(result)
    return groups


def compare_results(
    results: Sequence[BatchTestResult], test_case_id: str
) -> list[BatchTestResult]:
    """All results for one test case, one per template that completed it."""
    return [r for r in results if r.test_case_id == test_case_id]


def build_test_run(
    name: str,
    results: Sequence[BatchTestResult],
    provider: str,
    model: str,
    prompt_count: int,
    test_case_count: int,
    description: str | None = None,
) -> TestRun:
    """Package a finished batch as a self-contained TestRun.

    The run gets its own deep copy of the results, and its summary counts
    the results actually produced, not the pairs that were attempted.
    """
    summary = summarize(results)
    return TestRun(
        name=name,
        description=description,
        results=[r.model_copy(deep=True) for r in results],
        config=RunConfig(
            provider=provider,
            model=model,
            prompt_count=prompt_count,
            test_case_count=test_case_count,
        ),
        summary=RunSummary(
            total_tests=summary.total_tests,
            avg_response_time=summary.avg_response_time_ms,
            total_tokens=summary.total_tokens,
            total_cost=summary.total_cost,
        ),
    )
