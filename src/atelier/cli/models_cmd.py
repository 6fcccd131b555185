"""atelier models -- list known models with limits and pricing."""

from __future__ import annotations

from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from atelier.execution.cost import pricing_for
from atelier.models.catalog import DEFAULT_MODELS, get_models_for_provider


def models(
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Only this provider"),
) -> None:
    """List the model catalog."""
    providers = [provider] if provider else list(DEFAULT_MODELS)

    table = Table(box=box.SIMPLE, title="Models")
    table.add_column("Provider", style="dim")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Context", justify="right")
    table.add_column("Max output", justify="right")
    table.add_column("$/M in", justify="right")
    table.add_column("$/M out", justify="right")

    rows = 0
    for name in providers:
        for info in get_models_for_provider(name):
            pricing = pricing_for(info.id)
            model_id = info.id
            if DEFAULT_MODELS.get(name) == info.id:
                model_id += " *"
            table.add_row(
                info.provider,
                model_id,
                info.name,
                f"{info.context_window:,}" if info.context_window else "-",
                f"{info.max_output:,}" if info.max_output else "-",
                f"{pricing.input_per_million:.2f}" if pricing else "-",
                f"{pricing.output_per_million:.2f}" if pricing else "-",
            )
            rows += 1

    if rows == 0:
        typer.echo(f"No catalog for provider '{provider}'.", err=True)
        raise typer.Exit(code=1)

    console = Console()
    console.print(table)
    console.print("[dim]* default model for the provider[/dim]")
