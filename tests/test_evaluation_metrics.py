"""Tests for atelier.evaluation.metrics - summaries, grouping and run packaging."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from atelier.evaluation.metrics import (
    build_test_run,
    compare_results,
    group_by_test_case,
    summarize,
    summarize_by_template,
)
from atelier.models.result import BatchTestResult, EvaluationMetrics, TokenCounts


def _make_result(
    template: str = "concise",
    test_case_id: str = "tc-1",
    response_time_ms: float = 1000.0,
    total_tokens: int | None = 100,
    cost: float | None = 0.001,
    quality: int | None = None,
) -> BatchTestResult:
    tokens = None
    if total_tokens is not None:
        tokens = TokenCounts(prompt=total_tokens // 2, completion=total_tokens - total_tokens // 2, total=total_tokens)
    return BatchTestResult(
        prompt_template_id=f"id-{template}",
        prompt_template_name=template,
        test_case_id=test_case_id,
        test_case_name=f"case {test_case_id}",
        provider="openai",
        model="gpt-4o",
        response="Answer.",
        metrics=EvaluationMetrics(
            response_time_ms=response_time_ms,
            tokens=tokens,
            cost=cost,
            quality_score=quality,
        ),
    )


class TestSummarize:
    """Test totals and averages."""

    def test_empty_is_all_zero(self):
        summary = summarize([])
        assert summary.total_tests == 0
        assert summary.avg_response_time_ms == 0
        assert summary.total_tokens == 0
        assert summary.avg_tokens == 0
        assert summary.total_cost == 0

    def test_totals_and_averages(self):
        results = [
            _make_result(response_time_ms=1000, total_tokens=100, cost=0.001),
            _make_result(response_time_ms=2000, total_tokens=300, cost=0.002),
        ]
        summary = summarize(results)
        assert summary.total_tests == 2
        assert summary.avg_response_time_ms == 1500
        assert summary.total_response_time_ms == 3000
        assert summary.total_tokens == 400
        assert summary.avg_tokens == 200
        assert summary.total_cost == pytest.approx(0.003)

    def test_missing_tokens_and_cost_count_as_zero(self):
        results = [
            _make_result(total_tokens=None, cost=None),
            _make_result(total_tokens=50, cost=0.5),
        ]
        summary = summarize(results)
        assert summary.total_tokens == 50
        assert summary.avg_tokens == 25
        assert summary.total_cost == 0.5

    def test_averages_are_not_truncated(self):
        results = [_make_result(total_tokens=1), _make_result(total_tokens=2)]
        assert summarize(results).avg_tokens == 1.5


class TestSummarizeByTemplate:
    """Test per-template averages."""

    def test_first_appearance_order(self):
        results = [_make_result("b"), _make_result("a"), _make_result("b")]
        assert [s.template_name for s in summarize_by_template(results)] == ["b", "a"]

    def test_score_averages_skip_unscored(self):
        results = [
            _make_result("a", quality=80),
            _make_result("a", quality=None),
            _make_result("a", quality=60),
        ]
        (summary,) = summarize_by_template(results)
        assert summary.total_tests == 3
        assert summary.avg_quality_score == 70
        assert summary.avg_relevance_score is None


class TestGrouping:
    """Test per-test-case grouping for comparison."""

    def test_group_by_test_case(self):
        results = [
            _make_result("a", "tc-1"),
            _make_result("a", "tc-2"),
            _make_result("b", "tc-1"),
        ]
        groups = group_by_test_case(results)
        assert list(groups) == ["tc-1", "tc-2"]
        assert [r.prompt_template_name for r in groups["tc-1"]] == ["a", "b"]

    def test_compare_results(self):
        results = [_make_result("a", "tc-1"), _make_result("b", "tc-2")]
        assert [r.prompt_template_name for r in compare_results(results, "tc-2")] == ["b"]
        assert compare_results(results, "missing") == []


class TestBuildTestRun:
    """Test packaging a finished batch."""

    def test_summary_counts_results(self):
        results = [_make_result(), _make_result(response_time_ms=3000)]
        run = build_test_run("nightly", results, "openai", "gpt-4o", prompt_count=2, test_case_count=2)

        assert run.name == "nightly"
        assert run.summary.total_tests == 2
        assert run.summary.avg_response_time == 2000
        assert run.summary.total_tokens == 200
        assert run.config.prompt_count == 2
        assert run.config.test_case_count == 2
        assert run.config.provider == "openai"

    def test_results_are_copied(self):
        results = [_make_result()]
        run = build_test_run("r", results, "openai", "gpt-4o", 1, 1)
        assert run.results == results
        assert run.results[0] is not results[0]

    def test_empty_run(self):
        run = build_test_run("r", [], "openai", "gpt-4o", 1, 1, description="all failed")
        assert run.results == []
        assert run.summary.total_tests == 0
        assert run.description == "all failed"

    def test_mismatched_summary_rejected(self):
        run = build_test_run("r", [_make_result()], "openai", "gpt-4o", 1, 1)
        data = run.model_dump()
        data["summary"]["total_tests"] = 5
        with pytest.raises(ValidationError, match="does not match"):
            type(run).model_validate(data)
