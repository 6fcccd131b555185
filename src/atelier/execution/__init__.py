"""Atelier execution - batch runner, retry and cost estimation."""

from atelier.execution.batch_runner import BatchConfig, BatchRunner, run_batch
from atelier.execution.cost import estimate_cost
from atelier.execution.retry import retry_with_backoff

__all__ = [
    "BatchConfig",
    "BatchRunner",
    "estimate_cost",
    "retry_with_backoff",
    "run_batch",
]
