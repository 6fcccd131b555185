"""BatchRunner: cross-product execution of templates x test cases.

Drives every (template, test case) pair through a completion provider,
drains the stream into a full response, records latency, usage and cost,
and optionally attaches heuristic quality scores. A failing pair is
logged and dropped; it never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from atelier.adapters.base import (
    BaseProvider,
    ChatTurn,
    CompletionRequest,
    CompletionResult,
    ImageAttachment,
)
from atelier.errors import PairFailure, ValidationError
from atelier.evaluation.scoring import score_response
from atelier.execution.cost import estimate_cost
from atelier.execution.retry import retry_with_backoff
from atelier.models.prompt import PromptTemplate, TestCase
from atelier.models.result import BatchTestResult, EvaluationMetrics, TokenCounts

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class BatchConfig:
    """Settings shared by every pair of one batch run.

    Attributes:
        provider: Provider name recorded on each result (and resolved via
            the registry by the module-level run_batch()).
        model: Model identifier sent with each request.
        credential: API key; SDK providers fall back to their env var.
        evaluate_quality: Attach quality/relevance/coherence scores.
        max_parallel: Pairs in flight at once (1 = strictly sequential).
        max_retries: Fresh attempts per pair on transient errors.
        images: Attachments sent with every user prompt.
        history: Prior turns sent ahead of every user prompt.
    """

    provider: str
    model: str
    credential: str | None = None
    evaluate_quality: bool = False
    max_parallel: int = 1
    max_retries: int = 0
    images: list[ImageAttachment] = field(default_factory=list)
    history: list[ChatTurn] = field(default_factory=list)


class BatchRunner:
    """Runs the template x test case cross-product against one provider.

    Results come back in template-major order (T0xC0, T0xC1, ..., T1xC0,
    ...) restricted to pairs that succeeded, in both sequential and
    bounded-parallel mode. on_progress(completed, total) fires exactly
    once per attempted pair.
    """

    def __init__(self, provider: BaseProvider, config: BatchConfig) -> None:
        self._provider = provider
        self._config = config

    async def run_batch(
        self,
        templates: Sequence[PromptTemplate],
        test_cases: Sequence[TestCase],
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BatchTestResult]:
        """Execute every pair and return the successful results.

        Args:
            templates: System-prompt templates, iterated in order (outer loop).
            test_cases: Test cases, iterated in order (inner loop).
            on_progress: Optional callback(completed, total).
            cancel_event: When set, no further pairs are started and the
                results gathered so far are returned.

        Returns:
            One BatchTestResult per pair that completed; may be shorter
            than len(templates) * len(test_cases).

        Raises:
            ValidationError: If there are no templates, no test cases, or
                no usable credential. Raised before any request is sent.
        """
        if not templates:
            raise ValidationError("At least one prompt template is required")
        if not test_cases:
            raise ValidationError("At least one test case is required")
        if self._config.max_parallel < 1:
            raise ValidationError("max_parallel must be at least 1")

        credential = self._provider.resolve_credential(self._config.credential)
        pairs = [(t, c) for t in templates for c in test_cases]

        logger.info(
            "Starting batch: %d templates x %d test cases on %s/%s",
            len(templates), len(test_cases), self._config.provider, self._config.model,
        )

        if self._config.max_parallel <= 1:
            results = await self._run_sequential(pairs, credential, on_progress, cancel_event)
        else:
            results = await self._run_concurrent(pairs, credential, on_progress, cancel_event)

        dropped = len(pairs) - len(results)
        if dropped:
            logger.warning("Batch finished with %d of %d pairs dropped", dropped, len(pairs))
        return results

    async def _run_sequential(
        self,
        pairs: list[tuple[PromptTemplate, TestCase]],
        credential: str,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> list[BatchTestResult]:
        """Execute pairs one at a time in iteration order."""
        results: list[BatchTestResult] = []
        total = len(pairs)

        for index, (template, test_case) in enumerate(pairs, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Batch cancelled after %d of %d pairs", index - 1, total)
                break

            try:
                results.append(await self._execute_pair(template, test_case, credential))
            except PairFailure as failure:
                logger.warning("%s", failure)

            if on_progress is not None:
                on_progress(index, total)

        return results

    async def _run_concurrent(
        self,
        pairs: list[tuple[PromptTemplate, TestCase]],
        credential: str,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> list[BatchTestResult]:
        """Execute pairs with bounded parallelism, keeping index order."""
        semaphore = asyncio.Semaphore(self._config.max_parallel)
        slots: list[BatchTestResult | None] = [None] * len(pairs)
        lock = asyncio.Lock()
        total = len(pairs)
        completed = 0

        async def run_one(index: int) -> None:
            nonlocal completed
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return

                template, test_case = pairs[index]
                try:
                    slots[index] = await self._execute_pair(template, test_case, credential)
                except PairFailure as failure:
                    logger.warning("%s", failure)

            async with lock:
                completed += 1
                if on_progress is not None:
                    on_progress(completed, total)

        async with asyncio.TaskGroup() as tg:
            for index in range(total):
                tg.create_task(run_one(index))

        return [r for r in slots if r is not None]

    async def _execute_pair(
        self, template: PromptTemplate, test_case: TestCase, credential: str
    ) -> BatchTestResult:
        """Run one pair end to end.

        Raises:
            PairFailure: Wrapping whatever went wrong for this pair.
        """
        request = CompletionRequest(
            system_prompt=template.content,
            user_prompt=test_case.user_prompt,
            model=self._config.model,
            credential=credential,
            images=list(self._config.images),
            history=list(self._config.history),
        )

        async def attempt() -> tuple[CompletionResult, float]:
            start = time.perf_counter()
            completion = await self._provider.complete(request)
            return completion, (time.perf_counter() - start) * 1000

        try:
            (completion, elapsed_ms), _retries = await retry_with_backoff(
                attempt, max_retries=self._config.max_retries
            )
        except Exception as exc:
            raise PairFailure(template.name, test_case.name, exc) from exc

        tokens: TokenCounts | None = None
        cost: float | None = None
        if completion.usage is not None:
            tokens = TokenCounts(
                prompt=completion.usage.prompt_tokens,
                completion=completion.usage.completion_tokens,
                total=completion.usage.total_tokens,
            )
            cost = estimate_cost(
                self._config.model, tokens.prompt, tokens.completion
            )

        metrics = EvaluationMetrics(response_time_ms=elapsed_ms, tokens=tokens, cost=cost)
        if self._config.evaluate_quality:
            scores = score_response(
                completion.content, elapsed_ms, test_case.expected_behavior
            )
            metrics = metrics.model_copy(
                update={
                    "quality_score": scores.quality,
                    "relevance_score": scores.relevance,
                    "coherence_score": scores.coherence,
                }
            )

        return BatchTestResult(
            prompt_template_id=template.id,
            prompt_template_name=template.name,
            test_case_id=test_case.id,
            test_case_name=test_case.name,
            provider=self._config.provider,
            model=self._config.model,
            response=completion.content,
            metrics=metrics,
        )


async def run_batch(
    templates: Sequence[PromptTemplate],
    test_cases: Sequence[TestCase],
    config: BatchConfig,
    on_progress: ProgressCallback | None = None,
    provider: BaseProvider | None = None,
    cancel_event: asyncio.Event | None = None,
) -> list[BatchTestResult]:
    """Run a batch, resolving config.provider through the registry if needed."""
    if provider is None:
        from atelier.adapters.registry import get_provider

        provider = get_provider(config.provider)
    runner = BatchRunner(provider, config)
    return await runner.run_batch(
        templates, test_cases, on_progress=on_progress, cancel_event=cancel_event
    )
