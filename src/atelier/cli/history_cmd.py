"""atelier history -- list, inspect, export and prune saved runs.

Reads and writes run records through LibraryStore. Run ids may be
abbreviated to any unique prefix.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from atelier.cli.output import output_json, render_results, render_run_list, render_summary
from atelier.errors import ValidationError
from atelier.models.config import find_project_root, load_project_config
from atelier.models.result import TestRun
from atelier.storage.export import export_test_run, import_test_run
from atelier.storage.json_store import LibraryStore

console = Console(stderr=True)

history_app = typer.Typer(
    name="history",
    help="Inspect and manage saved runs.",
    no_args_is_help=True,
)


def _open_store() -> LibraryStore:
    project_root = find_project_root()
    config = load_project_config(project_root)
    return LibraryStore(
        project_root, storage_dir=config.storage_dir, history_limit=config.history_limit
    )


def _resolve_run(store: LibraryStore, run_id: str) -> TestRun:
    """Find a run by full id or unique prefix; exit 1 otherwise."""
    matches = [r for r in store.list_runs() if r.id == run_id or r.id.startswith(run_id)]
    exact = [r for r in matches if r.id == run_id]
    if exact:
        return exact[0]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[bold red]Error:[/bold red] No run matches '{run_id}'.")
    else:
        console.print(
            f"[bold red]Error:[/bold red] '{run_id}' is ambiguous ({len(matches)} runs)."
        )
    raise typer.Exit(code=1)


@history_app.command("list")
def list_runs(
    limit: int = typer.Option(10, "-n", "--limit", help="Number of runs to show"),
    format_json: bool = typer.Option(False, "--json", help="Output runs as JSON"),
) -> None:
    """Show saved runs, newest first."""
    runs = _open_store().list_runs()[:limit]
    if format_json:
        output_json(runs)
        return
    if not runs:
        typer.echo("No saved runs.")
        return
    render_run_list(runs, Console())


@history_app.command("show")
def show(
    run_id: str = typer.Argument(..., help="Run id or unique prefix"),
    format_json: bool = typer.Option(False, "--json", help="Output the run as JSON"),
) -> None:
    """Show one run's results and summary."""
    run = _resolve_run(_open_store(), run_id)
    if format_json:
        output_json(run)
        return

    output_console = Console()
    output_console.print(f"[bold]Run:[/bold] {run.name}  [dim]{run.id}[/dim]")
    if run.description:
        output_console.print(run.description)
    output_console.print(
        f"[bold]Model:[/bold] {run.config.provider}/{run.config.model}  "
        f"[bold]Pairs:[/bold] {run.config.prompt_count} x {run.config.test_case_count}"
    )
    render_results(run.results, output_console)
    render_summary(
        run.results,
        output_console,
        attempted=run.config.prompt_count * run.config.test_case_count,
    )


@history_app.command("export")
def export(
    run_id: str = typer.Argument(..., help="Run id or unique prefix"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to file instead of stdout"),
) -> None:
    """Export a run as a versioned JSON document."""
    document = export_test_run(_resolve_run(_open_store(), run_id))
    if output is None:
        typer.echo(document)
        return
    output.write_text(document + "\n", encoding="utf-8")
    console.print(f"Exported to {output}")


@history_app.command("import")
def import_run(
    path: Path = typer.Argument(..., help="Export document to load"),
) -> None:
    """Add an exported run back into history."""
    try:
        run = import_test_run(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    store = _open_store()
    if store.get_run(run.id) is not None:
        console.print(f"[bold red]Error:[/bold red] Run {run.id} is already in history.")
        raise typer.Exit(code=1)
    store.add_run(run)
    console.print(f"Imported run {run.id}")


@history_app.command("delete")
def delete(
    run_id: str = typer.Argument(..., help="Run id or unique prefix"),
) -> None:
    """Delete one saved run."""
    store = _open_store()
    run = _resolve_run(store, run_id)
    store.delete_run(run.id)
    console.print(f"Deleted run {run.id}")


@history_app.command("clear")
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all saved runs."""
    if not yes:
        typer.confirm("Delete all saved runs?", abort=True)
    _open_store().clear_history()
    console.print("History cleared.")
