"""Ordered multi-engine fallback under one wall-clock budget."""

from __future__ import annotations

import time
from collections.abc import Sequence

from docgate.config.constants import DEFAULT_OUTER_TIMEOUT
from docgate.core.models import ConversionRequest, ConversionResult, ExecutionAttempt
from docgate.core.workspace import Workspace
from docgate.engines.descriptor import EngineDescriptor
from docgate.engines.executor import EngineExecutor
from docgate.utils.logging import get_logger

log = get_logger(__name__)


class FallbackCoordinator:
    """Walks the candidate engines in order until one succeeds.

    Attempts run sequentially on the calling task. Each attempt gets the
    engine's own timeout, capped by what is left of the outer budget, so the
    whole chain never runs longer than ``outer_timeout``. The same engine is
    never retried.
    """

    def __init__(self, executor: EngineExecutor) -> None:
        self.executor = executor

    async def run(
        self,
        request: ConversionRequest,
        workspace: Workspace,
        candidates: Sequence[EngineDescriptor],
        outer_timeout: float = DEFAULT_OUTER_TIMEOUT,
    ) -> ConversionResult:
        """Run the fallback chain.

        Args:
            request: The conversion request
            workspace: Workspace holding the input document
            candidates: Engines in preference order
            outer_timeout: Budget in seconds for the whole chain

        Returns:
            Successful result with the workspace output path, or a failure
            carrying every attempt made
        """
        started = time.monotonic()
        attempts: list[ExecutionAttempt] = []

        def elapsed() -> float:
            return time.monotonic() - started

        for index, engine in enumerate(candidates):
            remaining = outer_timeout - elapsed()
            if remaining <= 0:
                log.warning(
                    "Outer timeout reached before next engine",
                    next_engine=engine.name,
                    attempts=len(attempts),
                )
                return ConversionResult.failure(
                    request.operation_id, "outer_timeout_exceeded", attempts, elapsed()
                )

            budget_limited = remaining < engine.timeout
            attempt = await self.executor.execute(
                engine,
                workspace,
                request.target_format,
                timeout=min(engine.timeout, remaining),
            )
            attempts.append(attempt)

            if attempt.succeeded:
                if index > 0:
                    log.info("Conversion succeeded on fallback engine", engine=engine.name)
                return ConversionResult(
                    operation_id=request.operation_id,
                    success=True,
                    output_path=attempt.output_path,
                    attempts=attempts,
                    total_duration=elapsed(),
                )

            if attempt.outcome == "timeout" and budget_limited:
                log.warning(
                    "Outer timeout exceeded during engine attempt",
                    engine=engine.name,
                    outer_timeout=outer_timeout,
                )
                return ConversionResult.failure(
                    request.operation_id, "outer_timeout_exceeded", attempts, elapsed()
                )

            if index + 1 < len(candidates):
                log.info(
                    "Engine failed, falling back",
                    engine=engine.name,
                    outcome=attempt.outcome,
                    next_engine=candidates[index + 1].name,
                )

        log.warning("All engines exhausted", attempts=len(attempts))
        return ConversionResult.failure(
            request.operation_id, "all_engines_exhausted", attempts, elapsed()
        )
