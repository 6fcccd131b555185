"""atelier run -- execute a suite's templates x test cases and report.

Loads a suite YAML, resolves the provider and model, runs the batch
via BatchRunner, renders Rich result tables, persists the run to the
history store, and exits with an appropriate code.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from atelier.adapters.base import BaseProvider
from atelier.adapters.boundary import RequestRateLimiter
from atelier.adapters.registry import get_provider
from atelier.cli.output import (
    create_batch_progress,
    output_json,
    render_results,
    render_summary,
)
from atelier.errors import AtelierError
from atelier.evaluation.metrics import build_test_run
from atelier.execution.batch_runner import BatchConfig, BatchRunner
from atelier.loader.suite import load_suite
from atelier.models.catalog import default_model_for
from atelier.models.config import ProjectConfig, find_project_root, load_project_config
from atelier.storage.json_store import LibraryStore

console = Console(stderr=True)

# Exit codes besides 0: fatal error / some pairs dropped
EXIT_ERROR = 1
EXIT_PARTIAL = 2


def run(
    suite_path: str = typer.Argument(..., help="Path to suite YAML file"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider name or dotted path"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model identifier"),
    api_key: Optional[str] = typer.Option(
        None, "--api-key", envvar="ATELIER_API_KEY", help="Credential (SDK providers fall back to their env var)"
    ),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help="Proxy URL for the http provider"),
    parallel: Optional[int] = typer.Option(None, "--parallel", help="Max pairs in flight"),
    retries: Optional[int] = typer.Option(None, "--retries", help="Retries per pair on transient errors"),
    quality: Optional[bool] = typer.Option(None, "--quality/--no-quality", help="Attach heuristic scores"),
    name: Optional[str] = typer.Option(None, "--name", help="Name for the saved run"),
    save: bool = typer.Option(True, "--save/--no-save", help="Persist the run to history"),
    format_json: bool = typer.Option(False, "--json", help="Output the run as pure JSON to stdout"),
) -> None:
    """Run every template against every test case in a suite."""
    asyncio.run(
        _run_async(
            suite_path,
            provider_override=provider,
            model_override=model,
            api_key=api_key,
            endpoint=endpoint,
            parallel=parallel,
            retries=retries,
            quality=quality,
            run_name=name,
            save=save,
            format_json=format_json,
        )
    )


def _build_provider(
    name: str, project_config: ProjectConfig, endpoint: str | None
) -> BaseProvider:
    """Instantiate the provider with the project's boundary settings."""
    kwargs: dict[str, Any] = {}
    if name == "http":
        url = endpoint or project_config.endpoints.get("http")
        if not url:
            raise ValueError(
                "the http provider needs --endpoint or endpoints.http in atelier.yaml"
            )
        kwargs["endpoint"] = url
    elif name in ("openai", "anthropic") and project_config.rate_limit.enabled:
        kwargs["rate_limiter"] = RequestRateLimiter(
            project_config.rate_limit.limit, block=True
        )
    return get_provider(name, **kwargs)


async def _run_async(
    suite_path: str,
    *,
    provider_override: str | None,
    model_override: str | None,
    api_key: str | None,
    endpoint: str | None,
    parallel: int | None,
    retries: int | None,
    quality: bool | None,
    run_name: str | None,
    save: bool,
    format_json: bool,
) -> None:
    """Async implementation of the run command."""
    filepath = Path(suite_path)
    if not filepath.exists():
        console.print(f"[bold red]Error:[/bold red] File not found: {suite_path}")
        raise typer.Exit(code=EXIT_ERROR)

    # 1. Load and validate suite
    suite, errors = load_suite(filepath)
    if errors:
        console.print("[bold red]Suite validation errors:[/bold red]")
        for err in errors:
            console.print(f"  {err.format(str(filepath))}")
        raise typer.Exit(code=EXIT_ERROR)

    assert suite is not None

    # 2. Merge settings: command line > suite > atelier.yaml
    project_root = find_project_root(filepath)
    project_config = load_project_config(project_root)

    provider_name = provider_override or suite.provider or project_config.default_provider
    model_name = (
        model_override
        or suite.model
        or project_config.default_model
        or default_model_for(provider_name)
    )
    if not model_name:
        console.print(
            f"[bold red]Error:[/bold red] No model given for provider '{provider_name}'. "
            "Use --model or set it in the suite."
        )
        raise typer.Exit(code=EXIT_ERROR)

    evaluate_quality = quality
    if evaluate_quality is None:
        evaluate_quality = (
            suite.evaluate_quality
            if suite.evaluate_quality is not None
            else project_config.evaluate_quality
        )

    # 3. Resolve provider
    try:
        completion_provider = _build_provider(provider_name, project_config, endpoint)
    except (ImportError, ValueError, TypeError) as exc:
        console.print(f"[bold red]Provider error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_ERROR)

    templates = suite.expand_templates()
    test_cases = suite.build_test_cases()
    attempted = len(templates) * len(test_cases)

    config = BatchConfig(
        provider=provider_name,
        model=model_name,
        credential=api_key,
        evaluate_quality=evaluate_quality,
        max_parallel=parallel if parallel is not None else project_config.max_parallel,
        max_retries=retries if retries is not None else project_config.max_retries,
    )
    runner = BatchRunner(completion_provider, config)

    # 4. Ctrl-C stops starting new pairs and keeps what finished
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops and non-main threads have no signal handlers
        handler_installed = False

    try:
        progress = None if format_json else create_batch_progress(console)
        if progress is not None:
            with progress:
                task = progress.add_task("Running pairs", total=attempted)

                def on_progress(completed: int, total: int) -> None:
                    progress.update(task, completed=completed)

                results = await runner.run_batch(
                    templates, test_cases, on_progress=on_progress, cancel_event=cancel_event
                )
        else:
            results = await runner.run_batch(templates, test_cases, cancel_event=cancel_event)
    except AtelierError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=EXIT_ERROR)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    if cancel_event.is_set():
        console.print("[yellow]Cancelled; keeping completed results.[/yellow]")

    # 5. Package and persist
    test_run = build_test_run(
        name=run_name or f"{filepath.stem} {datetime.now():%Y-%m-%d %H:%M}",
        results=results,
        provider=provider_name,
        model=model_name,
        prompt_count=len(templates),
        test_case_count=len(test_cases),
    )
    if save and results:
        store = LibraryStore(
            project_root,
            storage_dir=project_config.storage_dir,
            history_limit=project_config.history_limit,
        )
        store.add_run(test_run)

    # 6. Output
    if format_json:
        output_json(test_run)
    else:
        output_console = Console()
        render_results(results, output_console)
        render_summary(results, output_console, attempted=attempted)
        if save and results:
            output_console.print(f"[dim]Run saved: {test_run.id}[/dim]")

    # 7. Exit code
    if not results:
        raise typer.Exit(code=EXIT_ERROR)
    if len(results) < attempted:
        raise typer.Exit(code=EXIT_PARTIAL)
