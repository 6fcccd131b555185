"""Atelier data models - re-exports all public model classes."""

from atelier.models.config import ProjectConfig, RateLimitConfig
from atelier.models.prompt import PromptTemplate, PromptVariable, TestCase
from atelier.models.result import (
    BatchTestResult,
    EvaluationMetrics,
    RunConfig,
    RunSummary,
    TestRun,
    TokenCounts,
)

__all__ = [
    "BatchTestResult",
    "EvaluationMetrics",
    "ProjectConfig",
    "PromptTemplate",
    "PromptVariable",
    "RateLimitConfig",
    "RunConfig",
    "RunSummary",
    "TestCase",
    "TestRun",
    "TokenCounts",
]
