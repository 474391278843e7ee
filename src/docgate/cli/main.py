"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from docgate import __version__
from docgate.cli.commands.config import config_app
from docgate.cli.commands.convert import convert
from docgate.cli.commands.engines import engines
from docgate.cli.commands.sweep import sweep

# Load environment variables from .env file
load_dotenv()

# Create main Typer app
app = typer.Typer(
    name="docgate",
    help="Admission-controlled document conversion through external office engines.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

# Console for output
console = Console()

# Register commands
app.command(name="convert", help="Convert a single document.")(convert)
app.command(name="engines", help="List engines and supported conversions.")(engines)
app.command(name="sweep", help="Remove orphaned workspaces.")(sweep)
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]docgate[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """docgate - run document conversions through local office engines.

    Requests are admitted through a bounded queue, converted in an isolated
    workspace and retried on fallback engines when the preferred one fails.
    """
    pass


if __name__ == "__main__":
    app()
