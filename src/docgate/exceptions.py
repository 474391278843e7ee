"""Custom exceptions for docgate.

Expected engine failures (timeouts, crashes, missing binaries) are not exceptions:
they are reported as ``ExecutionAttempt`` outcomes. The classes here cover the
fast-fail paths of the pipeline and configuration mistakes.
"""

from pathlib import Path


class DocgateError(Exception):
    """Base exception class for docgate."""

    pass


class ConfigurationError(DocgateError):
    """Configuration error."""

    pass


class CapacityExceededError(DocgateError):
    """Admission queue is full (or the bounded wait expired)."""

    def __init__(
        self, max_concurrent: int, max_queue_size: int, message: str | None = None
    ) -> None:
        self.max_concurrent = max_concurrent
        self.max_queue_size = max_queue_size
        super().__init__(
            message
            or f"Capacity exceeded: {max_concurrent} active, {max_queue_size} queued"
        )


class UnsupportedConversionError(DocgateError):
    """No engine is routed for the requested format pair."""

    def __init__(self, source_format: str, target_format: str) -> None:
        self.source_format = source_format
        self.target_format = target_format
        super().__init__(f"Conversion from {source_format} to {target_format} is not supported")


class WorkspaceError(DocgateError):
    """Filesystem fault while creating, populating or removing a workspace."""

    def __init__(self, operation_id: str, message: str, cause: Exception | None = None) -> None:
        self.operation_id = operation_id
        self.cause = cause
        super().__init__(f"Workspace error for {operation_id}: {message}")


class PathEscapeError(WorkspaceError):
    """A generated path resolved outside the configured temp root."""

    def __init__(self, operation_id: str, path: Path, root: Path) -> None:
        self.path = path
        self.root = root
        super().__init__(operation_id, f"path {path.name!r} escapes workspace root")
