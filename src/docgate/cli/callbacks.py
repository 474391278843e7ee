"""CLI callback functions."""

from pathlib import Path

import typer

from docgate.core.models import normalize_format


def validate_output_dir(value: Path | None) -> Path | None:
    """Validate and create output directory if needed."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_format(value: str | None) -> str | None:
    """Normalise a format option such as ``.PDF`` to ``pdf``."""
    if value is None:
        return None

    fmt = normalize_format(value)
    if not fmt or not fmt.isalnum():
        raise typer.BadParameter(f"Invalid format '{value}'")

    return fmt
