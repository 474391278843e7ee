"""Engines command listing engines and the route table."""

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docgate.config import get_settings
from docgate.core.service import describe_capabilities
from docgate.exceptions import ConfigurationError

console = Console()


def engines(
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print capabilities as JSON.",
        ),
    ] = False,
) -> None:
    """Show configured engines, their availability and supported conversions."""
    try:
        capabilities = describe_capabilities(get_settings())
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if as_json:
        typer.echo(json.dumps(capabilities, indent=2))
        return

    console.print("\n[bold blue]Engines[/bold blue]\n")
    if not capabilities["engines"]:
        console.print("[yellow]No engines enabled.[/yellow]\n")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Engine", style="cyan")
    table.add_column("Kind")
    table.add_column("Priority", justify="right")
    table.add_column("Timeout", justify="right")
    table.add_column("Status")
    for engine in capabilities["engines"]:
        status = "[green]available[/green]" if engine["available"] else "[red]not found[/red]"
        table.add_row(
            engine["name"],
            engine["kind"],
            str(engine["priority"]),
            f"{engine['timeout']:g}s",
            status,
        )
    console.print(table)

    console.print("\n[bold blue]Routes[/bold blue]\n")
    routes = Table(show_header=True, header_style="bold")
    routes.add_column("Conversion", style="cyan")
    routes.add_column("Engines (in order)")
    for pair, names in capabilities["routes"].items():
        routes.add_row(pair, " -> ".join(names))
    console.print(routes)
    console.print()
