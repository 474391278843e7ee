"""Per-request filesystem isolation.

Every admitted request gets its own directory under the configured temp root:

    <temp_root>/<operation_id>/
        input/<sanitized original filename>
        output/
        profile/          # private engine user profile (LibreOffice)

The original filename is kept as close to verbatim as the filesystem allows,
because engines may embed it in output metadata.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path

import anyio

from docgate.config.constants import (
    FALLBACK_FILENAME,
    MAX_FILENAME_BYTES,
    WORKSPACE_INPUT_DIR,
    WORKSPACE_OUTPUT_DIR,
    WORKSPACE_PROFILE_DIR,
)
from docgate.core.models import is_valid_operation_id
from docgate.exceptions import PathEscapeError, WorkspaceError
from docgate.utils.fs import directory_age, ensure_directory, is_within, remove_tree
from docgate.utils.logging import display_name, get_logger

log = get_logger(__name__)

# Characters invalid on Windows or POSIX filesystems, path separators and control characters
_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')

_RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)


def _truncate_utf8(name: str, limit: int) -> str:
    """Trim ``name`` to ``limit`` UTF-8 bytes, keeping the extension when possible."""
    if len(name.encode("utf-8")) <= limit:
        return name

    stem, dot, suffix = name.rpartition(".")
    if not dot or not stem or len(suffix.encode("utf-8")) + 1 >= limit:
        stem, suffix = name, ""
    tail = f".{suffix}" if suffix else ""
    budget = limit - len(tail.encode("utf-8"))
    encoded = stem.encode("utf-8")[:budget]
    return encoded.decode("utf-8", errors="ignore") + tail


def _sanitize_once(filename: str) -> str:
    name = _ILLEGAL_CHARS.sub("_", filename)
    name = name.replace("..", "_")
    name = name.rstrip(". ")

    base = name.split(".", 1)[0].upper()
    if base in _RESERVED_NAMES:
        name = f"_{name}"

    name = _truncate_utf8(name, MAX_FILENAME_BYTES)
    return name or FALLBACK_FILENAME


def sanitize_filename(filename: str) -> str:
    """Make ``filename`` safe as a single path segment.

    Only filesystem-illegal characters, control characters and traversal
    sequences are replaced (with ``_``); spaces, parentheses, version tokens
    and non-ASCII text are preserved. The result is stable under repeated
    application.

    Examples:
        >>> sanitize_filename("Report (FINAL) v2.doc")
        'Report (FINAL) v2.doc'
        >>> sanitize_filename("bad<>name.doc")
        'bad__name.doc'
    """
    current = filename
    while True:
        cleaned = _sanitize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


@dataclass(frozen=True)
class Workspace:
    """Directories owned by exactly one request."""

    operation_id: str
    root: Path
    input_dir: Path
    output_dir: Path
    profile_dir: Path
    input_path: Path

    @property
    def stem(self) -> str:
        """Input filename without its extension."""
        return self.input_path.stem


class WorkspaceManager:
    """Creates and destroys request workspaces under one temp root."""

    def __init__(self, temp_root: Path | str) -> None:
        self.temp_root = Path(temp_root)

    def _validated(self, operation_id: str, path: Path) -> Path:
        if not is_within(path, self.temp_root):
            raise PathEscapeError(operation_id, path, self.temp_root)
        return path

    def _create_sync(
        self, operation_id: str, original_filename: str, source_bytes: bytes
    ) -> Workspace:
        if not is_valid_operation_id(operation_id):
            raise WorkspaceError(operation_id, "operation id is not a safe directory name")

        safe_name = sanitize_filename(original_filename)
        root = self._validated(operation_id, self.temp_root / operation_id)
        input_dir = self._validated(operation_id, root / WORKSPACE_INPUT_DIR)
        output_dir = self._validated(operation_id, root / WORKSPACE_OUTPUT_DIR)
        profile_dir = self._validated(operation_id, root / WORKSPACE_PROFILE_DIR)
        input_path = self._validated(operation_id, input_dir / safe_name)

        ensure_directory(self.temp_root)
        try:
            # exist_ok=False: two requests can never share a workspace
            root.mkdir()
        except FileExistsError as e:
            raise WorkspaceError(operation_id, "workspace already exists", e) from e
        except OSError as e:
            raise WorkspaceError(operation_id, f"cannot create workspace: {e.strerror}", e) from e

        workspace = Workspace(
            operation_id=operation_id,
            root=root,
            input_dir=input_dir,
            output_dir=output_dir,
            profile_dir=profile_dir,
            input_path=input_path,
        )
        try:
            input_dir.mkdir()
            output_dir.mkdir()
            profile_dir.mkdir()
            input_path.write_bytes(source_bytes)
        except OSError as e:
            # Do not leave a half-built workspace behind
            try:
                remove_tree(root)
            except OSError:
                log.warning("Failed to remove partial workspace", workspace=root.name)
            raise WorkspaceError(operation_id, f"cannot populate workspace: {e.strerror}", e) from e

        log.debug(
            "Workspace created",
            workspace=str(root),
            input=display_name(input_path),
            size=len(source_bytes),
        )
        return workspace

    async def create(
        self, operation_id: str, original_filename: str, source_bytes: bytes
    ) -> Workspace:
        """Create the workspace and write the source document into it.

        Args:
            operation_id: Unique request id, used as the directory name
            original_filename: Caller-supplied filename (sanitized here)
            source_bytes: Document content

        Returns:
            The new workspace

        Raises:
            WorkspaceError: If the directories or input file cannot be written
            PathEscapeError: If a generated path resolves outside the temp root
        """
        return await anyio.to_thread.run_sync(
            self._create_sync, operation_id, original_filename, source_bytes
        )

    def destroy(self, workspace: Workspace) -> bool:
        """Remove the workspace tree. Safe to call more than once.

        Returns:
            True if something was removed, False if it was already gone

        Raises:
            WorkspaceError: If the tree exists but cannot be removed
        """
        self._validated(workspace.operation_id, workspace.root)
        try:
            removed = remove_tree(workspace.root)
        except OSError as e:
            raise WorkspaceError(
                workspace.operation_id, f"cannot remove workspace: {e.strerror}", e
            ) from e
        if removed:
            log.debug("Workspace destroyed", workspace=workspace.root.name)
        return removed

    def discard(self, operation_id: str) -> bool:
        """Remove whatever exists for ``operation_id`` when ``create`` never returned.

        Used when the caller was cancelled while the worker thread was still
        building the workspace.
        """
        if not is_valid_operation_id(operation_id):
            return False
        root = self._validated(operation_id, self.temp_root / operation_id)
        try:
            return remove_tree(root)
        except OSError as e:
            raise WorkspaceError(operation_id, f"cannot remove workspace: {e.strerror}", e) from e

    def sweep_orphans(self, max_age: float, now: float | None = None) -> list[str]:
        """Remove stale workspaces left behind by a crashed process.

        Only direct children of the temp root whose name is a valid operation
        id, that contain an ``input`` directory and that are older than
        ``max_age`` seconds are removed.

        Returns:
            Names of the removed workspaces
        """
        if not self.temp_root.is_dir():
            return []

        now = time.time() if now is None else now
        removed: list[str] = []
        for entry in sorted(self.temp_root.iterdir()):
            if entry.is_symlink() or not entry.is_dir():
                continue
            if not is_valid_operation_id(entry.name):
                continue
            if not (entry / WORKSPACE_INPUT_DIR).is_dir():
                continue
            try:
                if directory_age(entry, now) < max_age:
                    continue
                remove_tree(entry)
            except OSError as e:
                log.warning("Failed to sweep workspace", workspace=entry.name, error=str(e))
                continue
            removed.append(entry.name)

        if removed:
            log.info("Swept orphaned workspaces", count=len(removed))
        return removed
