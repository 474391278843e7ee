"""Config command for configuration management."""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docgate.config import get_settings
from docgate.config.constants import CONFIG_LOCATIONS, DEFAULT_CONFIG_FILE
from docgate.core.service import build_descriptors
from docgate.engines.libreoffice import check_engines_available
from docgate.exceptions import ConfigurationError

# Create config sub-app
config_app = typer.Typer(help="Configuration management.")
console = Console()


@config_app.command("show")
def show() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print("\n[bold blue]Current Configuration[/bold blue]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    # Global settings
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Directory", settings.log_dir)
    table.add_row("JSON Logs", str(settings.json_logs))

    # Admission settings
    table.add_row("Max Concurrent Conversions", str(settings.admission.max_concurrent_conversions))
    table.add_row("Max Queue Size", str(settings.admission.max_queue_size))
    acquire_timeout = settings.admission.acquire_timeout
    table.add_row("Acquire Timeout", "wait" if acquire_timeout is None else f"{acquire_timeout:g}s")

    # Workspace settings
    table.add_row("Temp Root", settings.workspace.temp_root)
    table.add_row("Result Directory", settings.workspace.result_dir)
    table.add_row("Orphan Max Age", f"{settings.workspace.orphan_max_age:g}s")

    # Pipeline settings
    table.add_row("Outer Timeout", f"{settings.pipeline.outer_timeout:g}s")
    table.add_row("Diagnostic Limit", str(settings.pipeline.diagnostic_limit))
    table.add_row("Kill Grace", f"{settings.pipeline.kill_grace:g}s")

    # Engines
    engines = ", ".join(
        f"{e.name} (p{e.priority}{'' if e.enabled else ', disabled'})" for e in settings.engines
    )
    table.add_row("Engines", engines or "None configured")

    console.print(table)
    console.print()


DEFAULT_CONFIG_TEMPLATE = """# docgate configuration

log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
log_dir: ".logs"
json_logs: false

admission:
  max_concurrent_conversions: 2  # Conversions running at once
  max_queue_size: 10  # Requests allowed to wait; more are rejected
  # acquire_timeout: 30  # Seconds a queued request waits (omit to wait indefinitely)

workspace:
  # temp_root: "/tmp/docgate"  # Per-request workspaces are created here
  result_dir: "output"
  orphan_max_age: 3600  # Seconds before `docgate sweep` removes a leftover workspace

pipeline:
  outer_timeout: 300  # Seconds for the whole fallback chain
  diagnostic_limit: 4000  # Characters of engine output kept per attempt
  kill_grace: 5  # Seconds to wait for a killed engine to exit

# Engines are tried in ascending priority order. Placeholders:
# {input} {input_dir} {output_dir} {output} {stem} {target} {profile_uri}
engines:
  - name: "libreoffice"
    kind: "libreoffice"
    # executable: "/usr/bin/soffice"  # Default: DOCGATE_SOFFICE, install dirs, then PATH
    args: ["--headless", "--norestore", "-env:UserInstallation={profile_uri}",
           "--convert-to", "{target}", "--outdir", "{output_dir}", "{input}"]
    timeout: 120
    priority: 10
    conversions: ["doc->pdf", "docx->pdf", "odt->pdf", "rtf->pdf", "xlsx->pdf", "xls->pdf",
                  "pptx->pdf", "ppt->pdf", "doc->docx", "docx->doc", "xls->xlsx", "ppt->pptx"]
    format_tokens:
      txt: "txt:Text"
      html: "html:XHTML Writer File:UTF8"
  - name: "pandoc"
    kind: "pandoc"
    args: ["{input}", "--output", "{output}"]
    timeout: 60
    priority: 50
    conversions: ["docx->pdf", "docx->html", "md->docx", "md->html", "html->docx"]
"""


@config_app.command("init")
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Path to create config file.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing config file.",
        ),
    ] = False,
) -> None:
    """Initialize a configuration file."""
    config_path = path or Path.cwd() / DEFAULT_CONFIG_FILE

    if config_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists at {config_path}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(1)

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(f"[green]Created config file at:[/green] {config_path}")


@config_app.command("validate")
def validate() -> None:
    """Validate current configuration."""
    try:
        settings = get_settings()
        descriptors = build_descriptors(settings.engines)
    except (ValidationError, ConfigurationError) as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    console.print("\n[bold blue]Configuration Validation[/bold blue]\n")

    availability = check_engines_available(e for e in settings.engines if e.enabled)
    if descriptors:
        console.print("[green]Engines:[/green]")
        for descriptor in descriptors:
            status = (
                "[green]OK[/green]"
                if availability.get(descriptor.name)
                else "[yellow]executable not found[/yellow]"
            )
            console.print(
                f"  - {descriptor.name}: {len(descriptor.conversions)} conversions, {status}"
            )

    warnings = settings.config_warnings()
    warnings.extend(
        f"engine '{name}' executable not found" for name, ok in availability.items() if not ok
    )
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    console.print()
    console.print("[green]Configuration is valid![/green]")


@config_app.command("locations")
def locations() -> None:
    """Show configuration file search locations."""
    console.print("\n[bold blue]Configuration File Locations[/bold blue]\n")
    console.print("docgate searches for configuration files in the following order:\n")

    for i, loc in enumerate(CONFIG_LOCATIONS, 1):
        exists = "[green]exists[/green]" if loc.exists() else "[dim]not found[/dim]"
        console.print(f"  {i}. {loc} ({exists})")

    console.print()
    console.print("[dim]Environment variables with DOCGATE_ prefix are also supported.[/dim]")
    console.print()
