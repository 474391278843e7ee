"""Convert command for single file conversion."""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docgate.cli.callbacks import validate_format, validate_output_dir
from docgate.config import get_settings
from docgate.core.models import ConversionRequest, ConversionResult
from docgate.core.service import create_pipeline
from docgate.exceptions import ConfigurationError
from docgate.utils.fs import format_size
from docgate.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)

# Exit codes per public error category
EXIT_CODES = {
    None: 0,
    "conversion_failed": 1,
    "unsupported": 2,
    "capacity": 3,
    "infrastructure": 4,
}
EXIT_INTERRUPTED = 130


def convert(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Input file path to convert.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    to: Annotated[
        str,
        typer.Option(
            "--to",
            "-t",
            help="Target format, e.g. pdf, docx, html.",
            callback=validate_format,
        ),
    ],
    source_format: Annotated[
        str | None,
        typer.Option(
            "--from",
            "-f",
            help="Source format (defaults to the file extension).",
            callback=validate_format,
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output directory for the converted file.",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
            callback=validate_output_dir,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the result as JSON.",
        ),
    ] = False,
) -> None:
    """Convert a single document through the engine fallback chain.

    Examples:
        docgate convert report.docx --to pdf
        docgate convert "Report (FINAL) v2.doc" --to pdf -o ./out
        docgate convert notes.txt --from md --to html --json
    """
    settings = get_settings()

    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="convert",
        verbose=verbose,
        json_format=settings.json_logs,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))
    log.debug("Task configuration", task_id=task_id, config=settings.model_dump(mode="json"))

    try:
        request = ConversionRequest.from_file(
            input_file, target_format=to, source_format=source_format
        )
        pipeline = create_pipeline(settings)
    except (ValueError, ConfigurationError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    output_dir = output or Path(settings.workspace.result_dir)

    try:
        result = asyncio.run(pipeline.run(request, output_dir))
    except KeyboardInterrupt:
        log.warning("Task interrupted", operation_id=request.operation_id)
        console.print("\n[yellow]Interrupted. Exiting...[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED) from None

    if as_json:
        typer.echo(json.dumps(result.to_public_dict(), indent=2))
    else:
        _print_result(result)

    code = EXIT_CODES[result.error_category]
    if code:
        raise typer.Exit(code)


def _print_result(result: ConversionResult) -> None:
    """Display a conversion result."""
    if result.success and result.output_path is not None:
        size = format_size(result.output_path.stat().st_size)
        console.print(
            f"[green]Converted[/green] with [bold]{result.engine}[/bold] "
            f"in {result.total_duration:.2f}s -> {result.output_path} ({size})"
        )
    else:
        console.print(f"[red]Conversion failed:[/red] {result.message} ({result.error_kind})")

    if result.attempts:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Engine", style="cyan")
        table.add_column("Outcome")
        table.add_column("Exit Code", justify="right")
        table.add_column("Duration", justify="right")
        for attempt in result.attempts:
            style = "green" if attempt.succeeded else "yellow"
            table.add_row(
                attempt.engine,
                f"[{style}]{attempt.outcome}[/{style}]",
                "-" if attempt.exit_code is None else str(attempt.exit_code),
                f"{attempt.duration:.2f}s",
            )
        console.print(table)

    console.print(f"[dim]Operation id: {result.operation_id}[/dim]")
