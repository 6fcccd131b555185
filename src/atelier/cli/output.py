"""Rich terminal output layer for batch results and run history.

Provides the batch progress bar, result and summary tables, and JSON
output for machine consumption.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from atelier.evaluation.metrics import summarize, summarize_by_template

if TYPE_CHECKING:
    from atelier.models.result import BatchTestResult, TestRun


def configure_logging(verbose: bool) -> None:
    """Route atelier.* log records through a stderr RichHandler.

    Replaces any handler installed by an earlier call so repeated CLI
    invocations in one process do not duplicate output.
    """
    package_logger = logging.getLogger("atelier")
    for handler in list(package_logger.handlers):
        if isinstance(handler, RichHandler):
            package_logger.removeHandler(handler)

    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def create_batch_progress(console: Console) -> Progress | None:
    """Create a Rich Progress bar for batch execution.

    Returns None if the console is not a terminal (CI/pipe mode),
    so the caller can skip progress display.
    """
    if not console.is_terminal:
        return None

    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def _score(value: int | float | None) -> str:
    if value is None:
        return "-"
    style = "green" if value >= 70 else "yellow" if value >= 40 else "red"
    return f"[{style}]{value:.0f}[/{style}]"


def _cost(value: float | None) -> str:
    return f"${value:.4f}" if value is not None else "-"


def render_results(results: Sequence[BatchTestResult], console: Console) -> None:
    """One row per result: template, test case, latency, tokens, cost, scores."""
    table = Table(box=box.SIMPLE, title="Results")
    table.add_column("Template", style="bold")
    table.add_column("Test case")
    table.add_column("Time", justify="right")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Quality", justify="right")
    table.add_column("Relevance", justify="right")
    table.add_column("Coherence", justify="right")

    for result in results:
        metrics = result.metrics
        table.add_row(
            result.prompt_template_name,
            result.test_case_name,
            f"{metrics.response_time_ms:.0f}ms",
            str(metrics.tokens.total) if metrics.tokens else "-",
            _cost(metrics.cost),
            _score(metrics.quality_score),
            _score(metrics.relevance_score),
            _score(metrics.coherence_score),
        )

    console.print(table)


def render_summary(
    results: Sequence[BatchTestResult], console: Console, attempted: int | None = None
) -> None:
    """Headline totals, plus per-template averages when scores exist."""
    summary = summarize(results)

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    if attempted is not None and attempted != summary.total_tests:
        table.add_row(
            "Tests",
            f"{summary.total_tests}/{attempted} "
            f"[red]({attempted - summary.total_tests} failed)[/red]",
        )
    else:
        table.add_row("Tests", str(summary.total_tests))
    table.add_row("Avg time", f"{summary.avg_response_time_ms:.0f}ms")
    table.add_row("Total tokens", str(summary.total_tokens))
    table.add_row("Avg tokens", f"{summary.avg_tokens:.1f}")
    table.add_row("Total cost", _cost(summary.total_cost))
    console.print(table)

    per_template = summarize_by_template(results)
    if any(t.avg_quality_score is not None for t in per_template):
        scores = Table(box=box.SIMPLE, title="By template")
        scores.add_column("Template", style="bold")
        scores.add_column("Tests", justify="right")
        scores.add_column("Avg time", justify="right")
        scores.add_column("Quality", justify="right")
        scores.add_column("Relevance", justify="right")
        scores.add_column("Coherence", justify="right")
        for t in per_template:
            scores.add_row(
                t.template_name,
                str(t.total_tests),
                f"{t.avg_response_time_ms:.0f}ms",
                _score(t.avg_quality_score),
                _score(t.avg_relevance_score),
                _score(t.avg_coherence_score),
            )
        console.print(scores)


def render_run_list(runs: Sequence[TestRun], console: Console) -> None:
    """Tabular history view, newest first."""
    table = Table(box=box.SIMPLE, title="Run history")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("When")
    table.add_column("Model")
    table.add_column("Tests", justify="right")
    table.add_column("Avg time", justify="right")
    table.add_column("Cost", justify="right")

    for run in runs:
        table.add_row(
            run.id[:8],
            run.name,
            run.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"{run.config.provider}/{run.config.model}",
            str(run.summary.total_tests),
            f"{run.summary.avg_response_time:.0f}ms",
            _cost(run.summary.total_cost),
        )

    console.print(table)


def output_json(payload: BaseModel | Sequence[BaseModel]) -> None:
    """Write a model (or list of models) as pure JSON to stdout.

    No Rich markup, no color, no extra text.
    """
    if isinstance(payload, BaseModel):
        sys.stdout.write(payload.model_dump_json(indent=2))
    else:
        sys.stdout.write(json.dumps([m.model_dump(mode="json") for m in payload], indent=2))
    sys.stdout.write("\n")
