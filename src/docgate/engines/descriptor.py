"""Immutable engine descriptors and argument-template expansion."""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from docgate.config.constants import TEMPLATE_PLACEHOLDERS
from docgate.core.models import normalize_format
from docgate.exceptions import ConfigurationError

if TYPE_CHECKING:
    from docgate.config.settings import EngineConfig
    from docgate.core.workspace import Workspace


def template_fields(template: str) -> list[str]:
    """Placeholder names used in one argument template."""
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        raise ConfigurationError(f"Malformed argument template {template!r}: {e}") from e
    return [name for _, name, _, _ in parsed if name is not None]


def validate_template(args: tuple[str, ...] | list[str]) -> None:
    """Reject templates with unknown, positional or attribute placeholders.

    Raises:
        ConfigurationError: If any argument uses an unsupported placeholder
    """
    for arg in args:
        for name in template_fields(arg):
            if name not in TEMPLATE_PLACEHOLDERS:
                allowed = ", ".join(sorted(TEMPLATE_PLACEHOLDERS))
                raise ConfigurationError(
                    f"Unknown placeholder {{{name}}} in argument {arg!r} (allowed: {allowed})"
                )


@dataclass(frozen=True)
class EngineDescriptor:
    """One external conversion engine.

    ``args`` is a template rendered once per attempt into an argument vector;
    it is never passed through a shell.
    """

    name: str
    executable: str
    args: tuple[str, ...]
    timeout: float
    priority: int = 100
    conversions: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    format_tokens: dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    kind: str = "command"

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Engine name must not be empty")
        if self.timeout <= 0:
            raise ConfigurationError(f"Engine {self.name!r} timeout must be positive")
        validate_template(self.args)

    @classmethod
    def from_config(cls, config: EngineConfig, executable: str) -> EngineDescriptor:
        """Build a descriptor from validated configuration."""
        conversions = set()
        for pair in config.conversions:
            source, _, target = pair.partition("->")
            conversions.add((normalize_format(source), normalize_format(target)))
        return cls(
            name=config.name,
            executable=executable,
            args=tuple(config.args),
            timeout=config.timeout,
            priority=config.priority,
            conversions=frozenset(conversions),
            format_tokens={normalize_format(k): v for k, v in config.format_tokens.items()},
            kind=config.kind,
        )

    def supports(self, source_format: str, target_format: str) -> bool:
        return (source_format, target_format) in self.conversions

    def target_token(self, target_format: str) -> str:
        """Engine-specific spelling of the target format."""
        return self.format_tokens.get(target_format, target_format)

    def build_argv(self, workspace: Workspace, target_format: str) -> list[str]:
        """Render the argument vector for one attempt.

        All substituted paths are absolute. The returned list starts with the
        executable and is suitable for ``create_subprocess_exec``.
        """
        output_dir = workspace.output_dir.resolve()
        values = {
            "input": str(workspace.input_path.resolve()),
            "input_dir": str(workspace.input_dir.resolve()),
            "output_dir": str(output_dir),
            "output": str(output_dir / f"{workspace.stem}.{target_format}"),
            "stem": workspace.stem,
            "target": self.target_token(target_format),
            "profile_uri": workspace.profile_dir.resolve().as_uri(),
        }
        return [self.executable, *(arg.format_map(values) for arg in self.args)]
