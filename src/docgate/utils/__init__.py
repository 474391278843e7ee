"""Utility module for docgate."""

from docgate.utils.fs import (
    clear_directory,
    directory_age,
    ensure_directory,
    format_size,
    is_within,
    move_to_unique_path,
    remove_tree,
)

__all__ = [
    "clear_directory",
    "directory_age",
    "ensure_directory",
    "format_size",
    "is_within",
    "move_to_unique_path",
    "remove_tree",
]
