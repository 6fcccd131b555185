"""atelier validate CLI command for suite file validation.

Validates suite YAML files, reporting all errors at once, and shows
how many pairs each valid suite would run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from atelier.loader.suite import load_suite


def validate(
    suites: Optional[list[str]] = typer.Argument(
        None, help="Suite files to validate (default: all in suites/)"
    ),
) -> None:
    """Validate suite YAML files.

    Exits with code 0 if all valid, 1 if any errors.
    """
    files: list[Path] = []
    if suites:
        for s in suites:
            p = Path(s)
            if not p.exists():
                typer.echo(f"Error: File not found: {s}", err=True)
                raise typer.Exit(code=1)
            files.append(p)
    else:
        suites_dir = Path.cwd() / "suites"
        if suites_dir.is_dir():
            files = sorted(
                list(suites_dir.glob("**/*.yaml")) + list(suites_dir.glob("**/*.yml"))
            )
        if not files:
            typer.echo("No suite files found. Specify files or create a suites/ directory.")
            raise typer.Exit(code=1)

    valid_count = 0
    for filepath in files:
        suite, errors = load_suite(filepath)
        if errors:
            for err in errors:
                typer.echo(err.format(str(filepath)), err=True)
            continue

        assert suite is not None
        valid_count += 1
        n_templates = len(suite.expand_templates())
        n_cases = len(suite.test_cases)
        typer.echo(
            f"  {filepath} ... valid "
            f"({n_templates} templates x {n_cases} test cases = {n_templates * n_cases} pairs)"
        )

    typer.echo(f"\n{valid_count}/{len(files)} suites valid")

    if valid_count < len(files):
        raise typer.Exit(code=1)
