"""Result data models for batch runs.

These models encode the output contract: one BatchTestResult per
completed (template, test case) pair, and TestRun as the persisted,
self-contained snapshot of a whole batch.
Designed for JSON serialization and lossless round-trip deserialization.
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field, model_validator

from atelier.models.prompt import _new_id, _now


class TokenCounts(BaseModel):
    """Token usage for one completion."""

    model_config = {"extra": "forbid", "frozen": True}

    prompt: int = 0
    completion: int = 0
    total: int = 0


class EvaluationMetrics(BaseModel):
    """Latency, usage, cost and optional heuristic scores for one result."""

    model_config = {"extra": "forbid", "frozen": True}

    response_time_ms: float
    tokens: TokenCounts | None = None
    cost: float | None = None
    quality_score: int | None = Field(default=None, ge=0, le=100)
    relevance_score: int | None = Field(default=None, ge=0, le=100)
    coherence_score: int | None = Field(default=None, ge=0, le=100)


class BatchTestResult(BaseModel):
    """Outcome of one (template, test case) pair. Never mutated."""

    __test__: ClassVar[bool] = False

    model_config = {"extra": "forbid", "frozen": True}

    id: str = Field(default_factory=_new_id)
    prompt_template_id: str
    prompt_template_name: str
    test_case_id: str
    test_case_name: str
    provider: str
    model: str
    response: str
    metrics: EvaluationMetrics
    timestamp: datetime = Field(default_factory=_now)


class RunConfig(BaseModel):
    """Provider settings and input sizes a TestRun was produced with."""

    model_config = {"extra": "forbid"}

    provider: str
    model: str
    prompt_count: int
    test_case_count: int


class RunSummary(BaseModel):
    """Headline numbers stored alongside a TestRun."""

    model_config = {"extra": "forbid"}

    total_tests: int
    avg_response_time: float
    total_tokens: int
    total_cost: float


class TestRun(BaseModel):
    """A saved batch: its own copy of the results plus config and summary."""

    __test__: ClassVar[bool] = False

    model_config = {"extra": "forbid"}

    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    results: list[BatchTestResult] = Field(default_factory=list)
    config: RunConfig
    summary: RunSummary
    timestamp: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _check_total_tests(self) -> TestRun:
        if self.summary.total_tests != len(self.results):
            raise ValueError(
                f"summary.total_tests ({self.summary.total_tests}) does not "
                f"match the number of results ({len(self.results)})"
            )
        return self
