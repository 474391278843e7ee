"""File system utilities for docgate.

Provides the small set of path and file operations the workspace and
hand-off code need: containment checks, race-free moves to unique names,
idempotent tree removal and size formatting.
"""

import os
import shutil
from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path

    Returns:
        The directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_within(path: Path, root: Path) -> bool:
    """Check whether ``path`` resolves to ``root`` or somewhere below it.

    Both sides are resolved, so symlinks and ``..`` segments cannot fake
    containment.
    """
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


def _copy_exclusive(src: Path, dst: Path) -> None:
    """Copy ``src`` into a newly created ``dst``; fail if ``dst`` exists."""
    with open(src, "rb") as reader, open(dst, "xb") as writer:
        try:
            shutil.copyfileobj(reader, writer)
        except OSError:
            writer.close()
            dst.unlink(missing_ok=True)
            raise
    shutil.copystat(src, dst)


def _claim(src: Path, candidate: Path) -> None:
    """Make ``src`` available under ``candidate`` if that name is still free.

    Raises:
        FileExistsError: If ``candidate`` is already taken
    """
    try:
        os.link(src, candidate)
    except FileExistsError:
        raise
    except OSError:
        # Cross-device or no hard link support
        _copy_exclusive(src, candidate)


def move_to_unique_path(src: Path, dst: Path) -> Path:
    """Move a file to ``dst``, or beside it with a counter suffix if taken.

    Each candidate name (``report.pdf``, ``report_1.pdf``, ...) is claimed
    with an exclusive create, so concurrent movers targeting the same name
    end up with distinct files and never overwrite one another.

    Args:
        src: Source file path
        dst: Preferred destination path

    Returns:
        The destination path actually used

    Raises:
        OSError: If the file cannot be moved
    """
    dst.parent.mkdir(parents=True, exist_ok=True)

    counter = 0
    while True:
        candidate = dst if counter == 0 else dst.parent / f"{dst.stem}_{counter}{dst.suffix}"
        try:
            _claim(src, candidate)
        except FileExistsError:
            counter += 1
            continue
        src.unlink()
        return candidate


def remove_tree(path: Path) -> bool:
    """Recursively remove ``path``; a missing path is not an error.

    Returns:
        True if something was removed, False if the path was already gone

    Raises:
        OSError: If the tree exists but cannot be removed
    """
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return False
    return True


def clear_directory(directory: Path) -> int:
    """Remove every entry inside ``directory`` but keep the directory.

    Returns:
        Number of top-level entries removed
    """
    removed = 0
    if not directory.exists():
        return removed

    for entry in directory.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            remove_tree(entry)
        else:
            entry.unlink(missing_ok=True)
        removed += 1
    return removed


def directory_age(path: Path, now: float) -> float:
    """Seconds since ``path`` was last modified."""
    return now - os.stat(path).st_mtime


def format_size(size: int | float) -> str:
    """Format byte size as human-readable string.

    Args:
        size: Size in bytes

    Returns:
        Human-readable size string
    """
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.1f} {unit}"
        size_f /= 1024
    return f"{size_f:.1f} PB"
