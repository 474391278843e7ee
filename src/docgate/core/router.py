"""Format router selecting the ordered engine candidates for a conversion."""

from __future__ import annotations

from collections.abc import Iterable

from docgate.core.models import normalize_format
from docgate.engines.descriptor import EngineDescriptor
from docgate.exceptions import UnsupportedConversionError


class ConversionRouter:
    """Maps a (source, target) format pair to engines in preference order.

    The route table is computed once from the descriptors passed in and never
    changes afterwards. Candidates are ordered by ascending ``priority``;
    engines with equal priority keep their configuration order.
    """

    def __init__(self, engines: Iterable[EngineDescriptor]) -> None:
        self._engines = tuple(sorted(engines, key=lambda engine: engine.priority))

        routes: dict[tuple[str, str], list[EngineDescriptor]] = {}
        for engine in self._engines:
            for pair in sorted(engine.conversions):
                routes.setdefault(pair, []).append(engine)
        self._routes = {pair: tuple(candidates) for pair, candidates in routes.items()}

    @property
    def engines(self) -> tuple[EngineDescriptor, ...]:
        """All engines, in priority order."""
        return self._engines

    def resolve(self, source_format: str, target_format: str) -> tuple[EngineDescriptor, ...]:
        """Get the candidate engines for a conversion.

        Args:
            source_format: Source format (e.g. "docx", ".DOCX")
            target_format: Target format (e.g. "pdf")

        Returns:
            Non-empty tuple of engines, most preferred first

        Raises:
            UnsupportedConversionError: If no engine handles the pair
        """
        source = normalize_format(source_format)
        target = normalize_format(target_format)
        candidates = self._routes.get((source, target))
        if not candidates:
            raise UnsupportedConversionError(source, target)
        return candidates

    def is_supported(self, source_format: str, target_format: str) -> bool:
        """Check if any engine handles the conversion."""
        return (normalize_format(source_format), normalize_format(target_format)) in self._routes

    def supported_conversions(self) -> dict[tuple[str, str], list[str]]:
        """Route table as engine names per format pair, sorted by pair."""
        return {
            pair: [engine.name for engine in candidates]
            for pair, candidates in sorted(self._routes.items())
        }
