"""Sweep command removing orphaned workspaces."""

from typing import Annotated

import typer
from rich.console import Console

from docgate.config import get_settings
from docgate.core.workspace import WorkspaceManager
from docgate.utils.logging import setup_logging

console = Console()


def sweep(
    max_age: Annotated[
        float | None,
        typer.Option(
            "--max-age",
            help="Remove workspaces older than this many seconds (defaults to configuration).",
            min=0,
        ),
    ] = None,
) -> None:
    """Remove workspaces left behind by an interrupted process."""
    settings = get_settings()
    setup_logging(level=settings.log_level, json_format=settings.json_logs)

    manager = WorkspaceManager(settings.workspace.temp_root)
    age = settings.workspace.orphan_max_age if max_age is None else max_age

    removed = manager.sweep_orphans(age)
    if removed:
        console.print(f"[green]Removed {len(removed)} orphaned workspace(s)[/green]")
        for name in removed:
            console.print(f"  - {name}")
    else:
        console.print("[dim]No orphaned workspaces found.[/dim]")
