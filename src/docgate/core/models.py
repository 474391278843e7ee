"""Data model shared by the conversion pipeline."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

from docgate.config.constants import FORMAT_ALIASES

AttemptOutcome = Literal["success", "timeout", "crashed", "io_error"]

ErrorKind = Literal[
    "capacity_exceeded",
    "unsupported_conversion",
    "all_engines_exhausted",
    "outer_timeout_exceeded",
    "workspace_io_error",
]

ErrorCategory = Literal["capacity", "unsupported", "conversion_failed", "infrastructure"]

ERROR_CATEGORIES: dict[str, ErrorCategory] = {
    "capacity_exceeded": "capacity",
    "unsupported_conversion": "unsupported",
    "all_engines_exhausted": "conversion_failed",
    "outer_timeout_exceeded": "conversion_failed",
    "workspace_io_error": "infrastructure",
}

# Stable caller-facing messages; engine output never reaches the caller
PUBLIC_MESSAGES: dict[str, str] = {
    "capacity_exceeded": "Too many conversions in progress, try again later",
    "unsupported_conversion": "The requested conversion is not supported",
    "all_engines_exhausted": "The document could not be converted",
    "outer_timeout_exceeded": "The conversion did not finish in time",
    "workspace_io_error": "The conversion service hit an internal storage error",
}

_OPERATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def new_operation_id() -> str:
    """Timestamp plus random suffix, e.g. ``261018143052-a1b2c3d4``.

    Safe to use as a directory name on every supported filesystem.
    """
    return f"{datetime.now():%y%m%d%H%M%S}-{uuid.uuid4().hex[:8]}"


def is_valid_operation_id(operation_id: str) -> bool:
    """Check that an operation id can be used as a single path segment."""
    return bool(_OPERATION_ID_PATTERN.match(operation_id)) and ".." not in operation_id


def normalize_format(fmt: str) -> str:
    """Lower-case a format token, drop a leading dot and resolve aliases."""
    token = fmt.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(token, token)


@dataclass(frozen=True)
class ConversionRequest:
    """One conversion submitted to the pipeline. Immutable once created."""

    original_filename: str
    source_bytes: bytes = field(repr=False)
    source_format: str
    target_format: str
    operation_id: str = field(default_factory=new_operation_id)

    def __post_init__(self) -> None:
        if not is_valid_operation_id(self.operation_id):
            raise ValueError(f"invalid operation id: {self.operation_id!r}")
        object.__setattr__(self, "source_format", normalize_format(self.source_format))
        object.__setattr__(self, "target_format", normalize_format(self.target_format))
        if not self.source_format or not self.target_format:
            raise ValueError("source and target formats are required")

    @classmethod
    def from_file(
        cls,
        file_path: Path,
        target_format: str,
        source_format: str | None = None,
        operation_id: str | None = None,
    ) -> ConversionRequest:
        """Build a request from a file on disk, inferring the source format from its suffix."""
        fmt = source_format or file_path.suffix
        if not fmt:
            raise ValueError(f"cannot infer source format for {file_path.name!r}")
        kwargs: dict[str, Any] = {}
        if operation_id:
            kwargs["operation_id"] = operation_id
        return cls(
            original_filename=file_path.name,
            source_bytes=file_path.read_bytes(),
            source_format=fmt,
            target_format=target_format,
            **kwargs,
        )


@dataclass(frozen=True)
class ExecutionAttempt:
    """Outcome of one engine invocation."""

    engine: str
    outcome: AttemptOutcome
    started_at: datetime
    ended_at: datetime
    duration: float
    exit_code: int | None = None
    diagnostic: str = field(default="", repr=False)  # Tail of engine output, server-side only
    output_path: Path | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == "success"

    def to_public_dict(self) -> dict[str, Any]:
        """Caller-facing view: no paths, no engine output."""
        return {
            "engine": self.engine,
            "outcome": self.outcome,
            "exit_code": self.exit_code,
            "duration": round(self.duration, 3),
        }


@dataclass
class ConversionResult:
    """Terminal result of a request."""

    operation_id: str
    success: bool
    output_path: Path | None = None  # Valid only when success
    attempts: list[ExecutionAttempt] = field(default_factory=list)
    total_duration: float = 0.0
    error_kind: ErrorKind | None = None

    @classmethod
    def failure(
        cls,
        operation_id: str,
        error_kind: ErrorKind,
        attempts: list[ExecutionAttempt] | None = None,
        total_duration: float = 0.0,
    ) -> ConversionResult:
        return cls(
            operation_id=operation_id,
            success=False,
            attempts=list(attempts or []),
            total_duration=total_duration,
            error_kind=error_kind,
        )

    def with_output(self, output_path: Path) -> ConversionResult:
        """Copy of this result pointing at a relocated output file."""
        return replace(self, output_path=output_path)

    @property
    def engine(self) -> str | None:
        """Name of the engine that produced the output."""
        for attempt in self.attempts:
            if attempt.succeeded:
                return attempt.engine
        return None

    @property
    def error_category(self) -> ErrorCategory | None:
        if self.error_kind is None:
            return None
        return ERROR_CATEGORIES[self.error_kind]

    @property
    def message(self) -> str:
        if self.error_kind is None:
            return "Conversion completed"
        return PUBLIC_MESSAGES[self.error_kind]

    def to_public_dict(self) -> dict[str, Any]:
        """Caller-facing view of the result.

        Only the output file name is exposed; workspace paths and engine
        diagnostics stay in the server logs keyed by ``operation_id``.
        """
        return {
            "operation_id": self.operation_id,
            "success": self.success,
            "output_name": self.output_path.name if self.output_path else None,
            "engine": self.engine,
            "error": self.error_category,
            "error_kind": self.error_kind,
            "message": self.message,
            "total_duration": round(self.total_duration, 3),
            "attempts": [attempt.to_public_dict() for attempt in self.attempts],
        }
