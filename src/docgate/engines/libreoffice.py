"""Executable discovery for the built-in engine kinds."""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from docgate.config.constants import SOFFICE_DARWIN_PATH, SOFFICE_ENV_VAR, SOFFICE_WINDOWS_PATHS

if TYPE_CHECKING:
    from docgate.config.settings import EngineConfig


def find_soffice() -> str | None:
    """Find LibreOffice soffice executable."""
    override = os.environ.get(SOFFICE_ENV_VAR)
    if override and Path(override).is_file():
        return override

    # Try common locations
    if sys.platform == "win32":
        for path in SOFFICE_WINDOWS_PATHS:
            if Path(path).exists():
                return path

    elif sys.platform == "darwin":
        if Path(SOFFICE_DARWIN_PATH).exists():
            return SOFFICE_DARWIN_PATH

    # Try PATH
    return shutil.which("soffice") or shutil.which("libreoffice")


def resolve_executable(config: EngineConfig) -> str:
    """Pick the executable for an engine.

    An explicit ``executable`` wins. LibreOffice engines search the usual
    install locations, everything else is looked up on PATH by name. When
    nothing is found the bare name is returned; starting it later fails as an
    ``io_error`` attempt instead of breaking configuration loading.
    """
    if config.executable:
        return shutil.which(config.executable) or config.executable

    if config.kind == "libreoffice":
        return find_soffice() or "soffice"

    return shutil.which(config.name) or config.name


def is_executable_available(executable: str) -> bool:
    """Check whether an executable path or command name can be started."""
    path = Path(executable)
    if path.is_absolute() or len(path.parts) > 1:
        return path.is_file() and os.access(path, os.X_OK)
    return shutil.which(executable) is not None


def check_engines_available(engines: Iterable[EngineConfig]) -> dict[str, bool]:
    """Check availability of configured engines.

    Returns:
        Dictionary mapping engine name to availability status
    """
    return {
        engine.name: is_executable_available(resolve_executable(engine)) for engine in engines
    }
