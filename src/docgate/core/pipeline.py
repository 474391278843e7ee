"""Scoped per-request lifecycle: admission, workspace, routing, fallback, hand-off.

``CleanupManager`` is the one place that acquires and releases admission
slots and creates and destroys workspaces. Every exit path, including caller
cancellation and unexpected errors, goes through the same ``finally`` block.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import anyio

from docgate.config.constants import DEFAULT_OUTER_TIMEOUT, DEFAULT_RESULT_DIR
from docgate.core.admission import AdmissionController
from docgate.core.fallback import FallbackCoordinator
from docgate.core.models import ConversionRequest, ConversionResult, ErrorKind
from docgate.core.router import ConversionRouter
from docgate.core.workspace import Workspace, WorkspaceManager
from docgate.exceptions import CapacityExceededError, UnsupportedConversionError, WorkspaceError
from docgate.utils.fs import move_to_unique_path
from docgate.utils.logging import bind_operation, display_name, get_logger

log = get_logger(__name__)


class CleanupManager:
    """Runs conversion requests with guaranteed release and cleanup.

    For every request, exactly one admission acquire/release pair and at
    most one workspace create/destroy pair happen, whatever the outcome.
    A successful output is moved to a caller-owned directory before the
    workspace is destroyed.
    """

    def __init__(
        self,
        admission: AdmissionController,
        workspaces: WorkspaceManager,
        router: ConversionRouter,
        coordinator: FallbackCoordinator,
        outer_timeout: float = DEFAULT_OUTER_TIMEOUT,
        result_dir: Path | str = DEFAULT_RESULT_DIR,
        acquire_timeout: float | None = None,
    ) -> None:
        """Initialize the cleanup manager.

        Args:
            admission: Shared admission gate
            workspaces: Workspace factory under the temp root
            router: Route table
            coordinator: Fallback chain runner
            outer_timeout: Budget for the whole fallback chain in seconds
            result_dir: Default directory receiving successful outputs
            acquire_timeout: Maximum seconds to wait for admission (None waits)
        """
        self.admission = admission
        self.workspaces = workspaces
        self.router = router
        self.coordinator = coordinator
        self.outer_timeout = outer_timeout
        self.result_dir = Path(result_dir)
        self.acquire_timeout = acquire_timeout
        self.cleanup_failures = 0

    @asynccontextmanager
    async def scope(self, request: ConversionRequest) -> AsyncGenerator[Workspace, None]:
        """Hold an admission slot and a fresh workspace for the block.

        Raises:
            CapacityExceededError: If no slot could be obtained
            WorkspaceError: If the workspace could not be created
        """
        token = await self.admission.acquire(request.operation_id, timeout=self.acquire_timeout)
        workspace: Workspace | None = None
        try:
            try:
                workspace = await self.workspaces.create(
                    request.operation_id, request.original_filename, request.source_bytes
                )
            except asyncio.CancelledError:
                # The worker thread may have finished building it
                await self._cleanup(
                    self.workspaces.discard, request.operation_id, request.operation_id
                )
                raise
            yield workspace
        finally:
            try:
                if workspace is not None:
                    await self._cleanup(self.workspaces.destroy, workspace, workspace.root.name)
            finally:
                self.admission.release(token)

    async def _cleanup(self, remove: Callable[[Any], bool], target: Any, label: str) -> None:
        """Run a workspace removal in a worker thread and wait for it to finish.

        A cancellation arriving meanwhile is held back until the removal is
        done and then re-raised. Removal errors are logged and counted.
        """
        work = asyncio.ensure_future(anyio.to_thread.run_sync(remove, target))
        cancelled = False
        with anyio.CancelScope(shield=True):
            while not work.done():
                try:
                    await asyncio.wait({work})
                except asyncio.CancelledError:
                    cancelled = True

        try:
            work.result()
        except WorkspaceError as e:
            self.cleanup_failures += 1
            log.error("Workspace cleanup failed", workspace=label, error=str(e))
        if cancelled:
            raise asyncio.CancelledError

    @staticmethod
    def _rejected(request: ConversionRequest, error_kind: ErrorKind) -> ConversionResult:
        return ConversionResult.failure(request.operation_id, error_kind)

    async def _hand_off(
        self, result: ConversionResult, workspace: Workspace, destination_dir: Path
    ) -> ConversionResult:
        """Move the output out of the workspace into ``destination_dir``."""
        source = result.output_path
        if source is None:
            log.error("Successful attempt reported no output", engine=result.engine)
            return ConversionResult.failure(
                result.operation_id, "workspace_io_error", result.attempts, result.total_duration
            )
        target = destination_dir / f"{workspace.stem}{source.suffix}"

        try:
            final_path = await anyio.to_thread.run_sync(move_to_unique_path, source, target)
        except OSError as e:
            log.error(
                "Failed to hand off conversion output",
                output=display_name(source),
                error=e.strerror or str(e),
            )
            return ConversionResult.failure(
                result.operation_id, "workspace_io_error", result.attempts, result.total_duration
            )

        log.debug("Output handed off", path=str(final_path))
        return result.with_output(final_path)

    async def run(
        self, request: ConversionRequest, destination_dir: Path | str | None = None
    ) -> ConversionResult:
        """Convert one request end to end.

        Fast-fail and infrastructure errors are reported through
        ``ConversionResult.error_kind``. Caller cancellation and unexpected
        errors propagate after cleanup has run.

        Args:
            request: The conversion request
            destination_dir: Directory for the output (defaults to ``result_dir``)

        Returns:
            Terminal result for the request
        """
        destination = Path(destination_dir) if destination_dir else self.result_dir
        started = time.monotonic()

        with bind_operation(request.operation_id):
            log.info(
                "Conversion requested",
                file=display_name(request.original_filename),
                source=request.source_format,
                target=request.target_format,
                size=len(request.source_bytes),
            )

            try:
                async with self.scope(request) as workspace:
                    candidates = self.router.resolve(request.source_format, request.target_format)
                    result = await self.coordinator.run(
                        request, workspace, candidates, self.outer_timeout
                    )
                    if result.success:
                        result = await self._hand_off(result, workspace, destination)
            except CapacityExceededError:
                result = self._rejected(request, "capacity_exceeded")
            except UnsupportedConversionError:
                result = self._rejected(request, "unsupported_conversion")
            except WorkspaceError as e:
                log.error("Workspace fault", error=str(e))
                result = self._rejected(request, "workspace_io_error")

            result.total_duration = time.monotonic() - started

            if result.success:
                log.info(
                    "Conversion completed",
                    engine=result.engine,
                    output=display_name(result.output_path),
                    attempts=len(result.attempts),
                    duration=round(result.total_duration, 3),
                )
            else:
                log.warning(
                    "Conversion failed",
                    error_kind=result.error_kind,
                    attempts=len(result.attempts),
                    duration=round(result.total_duration, 3),
                )
            return result
