"""atelier variations -- preview a template expanded over variable sets."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from atelier.errors import ValidationError
from atelier.prompts.variables import (
    COMMON_VARIABLE_PRESETS,
    extract_variable_keys,
    generate_variations,
)

console = Console(stderr=True)


def _parse_var(spec: str) -> tuple[str, list[str]]:
    """Parse ``key=v1,v2`` into (key, [v1, v2])."""
    key, sep, raw_values = spec.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValidationError(f"Expected key=value[,value...], got {spec!r}")
    values = [v.strip() for v in raw_values.split(",") if v.strip()]
    if not values:
        raise ValidationError(f"Variable {key!r} has no values")
    return key, values


def variations(
    template: Optional[str] = typer.Argument(None, help="Template text with {{placeholders}}"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the template from a file"),
    var: Optional[list[str]] = typer.Option(None, "--var", help="key=value1,value2 (repeatable)"),
    preset: Optional[list[str]] = typer.Option(
        None, "--preset", help=f"Built-in value list: {', '.join(COMMON_VARIABLE_PRESETS)}"
    ),
    format_json: bool = typer.Option(False, "--json", help="Output variations as JSON"),
) -> None:
    """Expand a template over the Cartesian product of variable values."""
    if file is not None:
        text = file.read_text(encoding="utf-8")
    elif template is not None:
        text = template
    else:
        console.print("[bold red]Error:[/bold red] Give a template or --file.")
        raise typer.Exit(code=1)

    variable_sets: dict[str, list[str]] = {}
    for name in preset or []:
        if name not in COMMON_VARIABLE_PRESETS:
            console.print(
                f"[bold red]Error:[/bold red] Unknown preset '{name}'. "
                f"Available: {', '.join(COMMON_VARIABLE_PRESETS)}"
            )
            raise typer.Exit(code=1)
        entry = COMMON_VARIABLE_PRESETS[name]
        variable_sets[str(entry["key"])] = list(entry["values"])  # type: ignore[call-overload]

    try:
        for spec in var or []:
            key, values = _parse_var(spec)
            variable_sets[key] = values
    except ValidationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    unfilled = [k for k in extract_variable_keys(text) if k not in variable_sets]
    if unfilled:
        console.print(
            f"[yellow]No values for: {', '.join(unfilled)} (left as placeholders)[/yellow]"
        )

    expanded = generate_variations(text, variable_sets)

    if format_json:
        payload = [
            {
                "prompt": v.prompt,
                "variables": [pv.model_dump(exclude_none=True) for pv in v.variables],
            }
            for v in expanded
        ]
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    output_console = Console()
    for i, variation in enumerate(expanded, 1):
        label = ", ".join(f"{v.key}={v.value}" for v in variation.variables) or "(no variables)"
        output_console.print(f"[bold]{i}.[/bold] [dim]{label}[/dim]")
        output_console.print(variation.prompt, markup=False, highlight=False)
        output_console.print()
