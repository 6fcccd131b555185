"""Atelier CLI entry point."""

import typer

from atelier import __version__
from atelier.cli.history_cmd import history_app
from atelier.cli.models_cmd import models
from atelier.cli.output import configure_logging
from atelier.cli.run_cmd import run
from atelier.cli.validate_cmd import validate
from atelier.cli.variations_cmd import variations

app = typer.Typer(
    name="atelier",
    help="Batch evaluation of LLM system prompts",
    no_args_is_help=True,
)

# Register subcommands
app.command()(run)
app.command()(validate)
app.command()(variations)
app.command()(models)
app.add_typer(history_app, name="history")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"atelier {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show debug logging."),
) -> None:
    """Batch evaluation of LLM system prompts."""
    configure_logging(verbose)
