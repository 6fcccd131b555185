"""Tests for atelier.execution.batch_runner - cross-product orchestration."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

import httpx
import pytest

from atelier.adapters.base import (
    BaseProvider,
    CompletionRequest,
    StreamDone,
    StreamEvent,
    TextDelta,
    UsageReport,
)
from atelier.adapters.http_adapter import HTTPStreamProvider
from atelier.errors import RateLimitError, RequestError, ValidationError
from atelier.execution.batch_runner import BatchConfig, BatchRunner, run_batch
from atelier.models.prompt import PromptTemplate, TestCase


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class ScriptedProvider(BaseProvider):
    """Provider that echoes the pair it was asked about.

    Pairs listed in ``fail`` raise the mapped exception instead, and each
    entry in ``flaky`` fails that many times before succeeding.
    """

    credential_env_var = None

    def __init__(
        self,
        fail: dict[tuple[str, str], Exception] | None = None,
        flaky: dict[tuple[str, str], int] | None = None,
        delay: float = 0.0,
        usage: UsageReport | None = UsageReport(prompt_tokens=10, completion_tokens=5, total_tokens=15),
    ) -> None:
        self._fail = fail or {}
        self._flaky = dict(flaky or {})
        self._delay = delay
        self._usage = usage
        self.requests: list[CompletionRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def stream_completion(self, request: CompletionRequest) -> AsyncIterator[StreamEvent]:
        self.requests.append(request)
        key = (request.system_prompt, request.user_prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if key in self._fail:
                raise self._fail[key]
            if self._flaky.get(key, 0) > 0:
                self._flaky[key] -= 1
                raise RequestError("Service unavailable", 503)
        finally:
            self.in_flight -= 1

        yield TextDelta(text=f"{request.system_prompt}|")
        yield TextDelta(text=request.user_prompt)
        if self._usage is not None:
            yield self._usage
        yield StreamDone()


def _templates(*names: str) -> list[PromptTemplate]:
    return [PromptTemplate(name=n, content=f"sys-{n}") for n in names]


def _cases(*names: str) -> list[TestCase]:
    return [TestCase(name=n, user_prompt=f"user-{n}") for n in names]


def _config(**overrides) -> BatchConfig:
    defaults = {"provider": "scripted", "model": "gpt-4o", "credential": "key"}
    defaults.update(overrides)
    return BatchConfig(**defaults)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBatchOrdering:
    """Test result order and content."""

    @pytest.mark.asyncio
    async def test_template_major_order(self):
        provider = ScriptedProvider()
        results = await BatchRunner(provider, _config()).run_batch(
            _templates("A", "B"), _cases("x", "y", "z")
        )
        assert [(r.prompt_template_name, r.test_case_name) for r in results] == [
            ("A", "x"), ("A", "y"), ("A", "z"),
            ("B", "x"), ("B", "y"), ("B", "z"),
        ]

    @pytest.mark.asyncio
    async def test_result_fields(self):
        templates = _templates("A")
        cases = _cases("x")
        results = await BatchRunner(ScriptedProvider(), _config()).run_batch(templates, cases)

        result = results[0]
        assert result.prompt_template_id == templates[0].id
        assert result.test_case_id == cases[0].id
        assert result.provider == "scripted"
        assert result.model == "gpt-4o"
        assert result.response == "sys-A|user-x"
        assert result.metrics.response_time_ms >= 0
        assert result.metrics.tokens is not None
        assert result.metrics.tokens.total == 15

    @pytest.mark.asyncio
    async def test_cost_from_pricing_table(self):
        results = await BatchRunner(ScriptedProvider(), _config(model="gpt-4o")).run_batch(
            _templates("A"), _cases("x")
        )
        # 10 in @ $2.50/M + 5 out @ $10/M
        assert results[0].metrics.cost == pytest.approx(0.000075)

    @pytest.mark.asyncio
    async def test_unknown_model_has_no_cost(self):
        results = await BatchRunner(ScriptedProvider(), _config(model="local-llm")).run_batch(
            _templates("A"), _cases("x")
        )
        assert results[0].metrics.cost is None

    @pytest.mark.asyncio
    async def test_no_usage_means_no_tokens(self):
        provider = ScriptedProvider(usage=None)
        results = await BatchRunner(provider, _config()).run_batch(_templates("A"), _cases("x"))
        assert results[0].metrics.tokens is None
        assert results[0].metrics.cost is None

    @pytest.mark.asyncio
    async def test_request_built_from_pair(self):
        provider = ScriptedProvider()
        await BatchRunner(provider, _config()).run_batch(_templates("A"), _cases("x"))
        request = provider.requests[0]
        assert request.system_prompt == "sys-A"
        assert request.user_prompt == "user-x"
        assert request.model == "gpt-4o"
        assert request.credential == "key"


class TestBatchFailures:
    """Test per-pair failure isolation and fatal validation."""

    @pytest.mark.asyncio
    async def test_single_failure_drops_one_result(self, caplog):
        provider = ScriptedProvider(fail={("sys-A", "user-y"): RequestError("boom", 500)})
        progress: list[tuple[int, int]] = []

        with caplog.at_level(logging.WARNING, logger="atelier"):
            results = await BatchRunner(provider, _config()).run_batch(
                _templates("A", "B"),
                _cases("x", "y"),
                on_progress=lambda done, total: progress.append((done, total)),
            )

        assert len(results) == 3
        assert ("A", "y") not in [(r.prompt_template_name, r.test_case_name) for r in results]
        assert progress == [(1, 4), (2, 4), (3, 4), (4, 4)]
        assert "Pair ('A', 'y') failed" in caplog.text

    @pytest.mark.asyncio
    async def test_rate_limit_failure_is_per_pair(self):
        provider = ScriptedProvider(fail={("sys-A", "user-x"): RateLimitError()})
        results = await BatchRunner(provider, _config()).run_batch(_templates("A"), _cases("x", "y"))
        assert [r.test_case_name for r in results] == ["y"]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_per_pair(self):
        provider = ScriptedProvider(fail={("sys-A", "user-x"): KeyError("weird")})
        results = await BatchRunner(provider, _config()).run_batch(_templates("A"), _cases("x", "y"))
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_all_failing_returns_empty(self):
        provider = ScriptedProvider(fail={("sys-A", "user-x"): RequestError("down")})
        results = await BatchRunner(provider, _config()).run_batch(_templates("A"), _cases("x"))
        assert results == []

    @pytest.mark.asyncio
    async def test_no_templates_is_fatal(self):
        provider = ScriptedProvider()
        with pytest.raises(ValidationError, match="template"):
            await BatchRunner(provider, _config()).run_batch([], _cases("x"))
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_no_test_cases_is_fatal(self):
        provider = ScriptedProvider()
        with pytest.raises(ValidationError, match="test case"):
            await BatchRunner(provider, _config()).run_batch(_templates("A"), [])
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_missing_credential_is_fatal(self):
        provider = ScriptedProvider()
        with pytest.raises(ValidationError):
            await BatchRunner(provider, _config(credential=None)).run_batch(
                _templates("A"), _cases("x")
            )
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_invalid_parallelism_is_fatal(self):
        with pytest.raises(ValidationError):
            await BatchRunner(ScriptedProvider(), _config(max_parallel=0)).run_batch(
                _templates("A"), _cases("x")
            )


class TestQualityScoring:
    """Test optional score attachment."""

    @pytest.mark.asyncio
    async def test_scores_absent_by_default(self):
        results = await BatchRunner(ScriptedProvider(), _config()).run_batch(
            _templates("A"), _cases("x")
        )
        metrics = results[0].metrics
        assert metrics.quality_score is None
        assert metrics.relevance_score is None
        assert metrics.coherence_score is None

    @pytest.mark.asyncio
    async def test_scores_attached_when_requested(self):
        cases = [TestCase(name="x", user_prompt="user-x", expected_behavior="user")]
        results = await BatchRunner(ScriptedProvider(), _config(evaluate_quality=True)).run_batch(
            _templates("A"), cases
        )
        metrics = results[0].metrics
        assert metrics.quality_score is not None
        assert 0 <= metrics.quality_score <= 100
        assert metrics.relevance_score == 100
        assert metrics.coherence_score is not None


class TestRetry:
    """Test opt-in retry of transient failures."""

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self):
        provider = ScriptedProvider(flaky={("sys-A", "user-x"): 1})
        results = await BatchRunner(provider, _config()).run_batch(_templates("A"), _cases("x"))
        assert results == []
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_retried_with_fresh_request(self, monkeypatch):
        async def no_sleep(_delay):
            return None

        monkeypatch.setattr("atelier.execution.retry.asyncio.sleep", no_sleep)
        provider = ScriptedProvider(flaky={("sys-A", "user-x"): 2})
        progress: list[int] = []

        results = await BatchRunner(provider, _config(max_retries=3)).run_batch(
            _templates("A"), _cases("x"), on_progress=lambda done, total: progress.append(done)
        )

        assert len(results) == 1
        assert len(provider.requests) == 3
        assert progress == [1]

    @pytest.mark.asyncio
    async def test_connect_timeout_over_http_is_retried(self, monkeypatch):
        async def no_sleep(_delay):
            return None

        monkeypatch.setattr("atelier.execution.retry.asyncio.sleep", no_sleep)
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectTimeout("timed out", request=request)
            return httpx.Response(200, text='data: {"content": "ok"}\n\ndata: [DONE]\n\n')

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = HTTPStreamProvider("http://proxy.test/api/openai", client=client)

        results = await BatchRunner(provider, _config(max_retries=3)).run_batch(
            _templates("A"), _cases("x")
        )

        assert [r.response for r in results] == ["ok"]
        assert len(calls) == 2


class TestConcurrency:
    """Test bounded-parallel mode."""

    @pytest.mark.asyncio
    async def test_parallel_keeps_order(self):
        provider = ScriptedProvider(delay=0.01)
        results = await BatchRunner(provider, _config(max_parallel=4)).run_batch(
            _templates("A", "B", "C"), _cases("x", "y")
        )
        assert [(r.prompt_template_name, r.test_case_name) for r in results] == [
            ("A", "x"), ("A", "y"), ("B", "x"), ("B", "y"), ("C", "x"), ("C", "y"),
        ]

    @pytest.mark.asyncio
    async def test_parallelism_is_bounded(self):
        provider = ScriptedProvider(delay=0.01)
        await BatchRunner(provider, _config(max_parallel=2)).run_batch(
            _templates("A", "B", "C"), _cases("x", "y")
        )
        assert provider.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_sequential_never_overlaps(self):
        provider = ScriptedProvider(delay=0.001)
        await BatchRunner(provider, _config()).run_batch(_templates("A", "B"), _cases("x", "y"))
        assert provider.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_parallel_progress_is_monotonic(self):
        provider = ScriptedProvider(fail={("sys-B", "user-x"): RequestError("boom")}, delay=0.001)
        progress: list[int] = []
        results = await BatchRunner(provider, _config(max_parallel=3)).run_batch(
            _templates("A", "B"), _cases("x", "y"),
            on_progress=lambda done, total: progress.append(done),
        )
        assert len(results) == 3
        assert progress == [1, 2, 3, 4]


class TestCancellation:
    """Test cooperative cancellation between pairs."""

    @pytest.mark.asyncio
    async def test_cancel_stops_further_pairs(self):
        cancel = asyncio.Event()

        def on_progress(done: int, total: int) -> None:
            if done == 2:
                cancel.set()

        provider = ScriptedProvider()
        results = await BatchRunner(provider, _config()).run_batch(
            _templates("A", "B"), _cases("x", "y"), on_progress=on_progress, cancel_event=cancel
        )
        assert [(r.prompt_template_name, r.test_case_name) for r in results] == [
            ("A", "x"), ("A", "y"),
        ]
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_pre_set_cancel_runs_nothing(self):
        cancel = asyncio.Event()
        cancel.set()
        provider = ScriptedProvider()
        results = await BatchRunner(provider, _config(max_parallel=2)).run_batch(
            _templates("A"), _cases("x", "y"), cancel_event=cancel
        )
        assert results == []
        assert provider.requests == []


class TestModuleLevelRunBatch:
    """Test the run_batch() convenience function."""

    @pytest.mark.asyncio
    async def test_uses_given_provider(self):
        results = await run_batch(
            _templates("A"), _cases("x"), _config(), provider=ScriptedProvider()
        )
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_independent_runs_do_not_share_results(self):
        provider = ScriptedProvider()
        first, second = await asyncio.gather(
            run_batch(_templates("A"), _cases("x"), _config(), provider=provider),
            run_batch(_templates("B"), _cases("y", "z"), _config(), provider=provider),
        )
        assert [r.prompt_template_name for r in first] == ["A"]
        assert [r.prompt_template_name for r in second] == ["B", "B"]
