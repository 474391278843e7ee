"""Single-attempt execution of an external conversion engine."""

from __future__ import annotations

import asyncio
import sys
import time
from datetime import datetime
from pathlib import Path

import anyio

from docgate.config.constants import DEFAULT_DIAGNOSTIC_LIMIT, DEFAULT_KILL_GRACE
from docgate.core.models import AttemptOutcome, ExecutionAttempt
from docgate.core.workspace import Workspace
from docgate.engines.descriptor import EngineDescriptor
from docgate.engines.process import terminate_process
from docgate.utils.fs import clear_directory
from docgate.utils.logging import display_name, get_logger

log = get_logger(__name__)

# Bytes read from an engine's output pipe at a time
READ_CHUNK_SIZE = 64 * 1024


def find_output(output_dir: Path, stem: str, target_format: str) -> Path | None:
    """Locate a non-empty engine output file.

    The expected name is ``<stem>.<target_format>``; some engines rename the
    output, so any file with the target suffix is accepted as a fallback.
    """
    expected = output_dir / f"{stem}.{target_format}"
    if expected.is_file() and expected.stat().st_size > 0:
        return expected

    if not output_dir.is_dir():
        return None
    suffix = f".{target_format}"
    for candidate in sorted(output_dir.iterdir()):
        if (
            candidate.is_file()
            and candidate.suffix.lower() == suffix
            and candidate.stat().st_size > 0
        ):
            return candidate
    return None


class EngineExecutor:
    """Runs one engine once against one workspace.

    Expected failures are returned as an ``ExecutionAttempt`` outcome, never
    raised. The executor does not retry; fallback lives one layer up.
    """

    def __init__(
        self,
        diagnostic_limit: int = DEFAULT_DIAGNOSTIC_LIMIT,
        kill_grace: float = DEFAULT_KILL_GRACE,
    ) -> None:
        """Initialize the executor.

        Args:
            diagnostic_limit: Characters of engine output kept per attempt
            kill_grace: Seconds to wait for a killed process to exit
        """
        self.diagnostic_limit = diagnostic_limit
        self.kill_grace = kill_grace

    def _diagnostic(self, output: bytes | None) -> str:
        if not output or self.diagnostic_limit == 0:
            return ""
        text = output.decode("utf-8", errors="replace").strip()
        return text[-self.diagnostic_limit :]

    async def _read_tail(self, stream: asyncio.StreamReader) -> bytes:
        """Drain ``stream`` to EOF, keeping only the bytes a diagnostic can use."""
        # A UTF-8 character is at most 4 bytes
        keep = self.diagnostic_limit * 4
        tail = bytearray()
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                return bytes(tail)
            tail += chunk
            if len(tail) > keep:
                del tail[: len(tail) - keep]

    async def _wait(self, process: asyncio.subprocess.Process) -> bytes:
        output = b""
        if process.stdout is not None:
            output = await self._read_tail(process.stdout)
        await process.wait()
        return output

    async def execute(
        self,
        engine: EngineDescriptor,
        workspace: Workspace,
        target_format: str,
        timeout: float | None = None,
    ) -> ExecutionAttempt:
        """Run ``engine`` once.

        Args:
            engine: Engine to invoke
            workspace: Workspace holding the input document
            target_format: Normalised target format
            timeout: Attempt timeout, defaults to the engine's own timeout

        Returns:
            The attempt record

        Raises:
            asyncio.CancelledError: If the caller was cancelled; the process tree is killed first
        """
        limit = engine.timeout if timeout is None else timeout
        started_at = datetime.now()
        started = time.monotonic()

        def attempt(
            outcome: AttemptOutcome,
            exit_code: int | None = None,
            diagnostic: str = "",
            output_path: Path | None = None,
        ) -> ExecutionAttempt:
            result = ExecutionAttempt(
                engine=engine.name,
                outcome=outcome,
                started_at=started_at,
                ended_at=datetime.now(),
                duration=time.monotonic() - started,
                exit_code=exit_code,
                diagnostic=diagnostic,
                output_path=output_path,
            )
            log.info(
                "Engine attempt finished",
                engine=engine.name,
                outcome=outcome,
                exit_code=exit_code,
                duration=round(result.duration, 3),
            )
            if diagnostic and outcome != "success":
                log.debug("Engine diagnostic output", engine=engine.name, diagnostic=diagnostic)
            return result

        try:
            # A previous engine may have left a partial file behind
            await anyio.to_thread.run_sync(clear_directory, workspace.output_dir)
            argv = engine.build_argv(workspace, target_format)
        except OSError as e:
            return attempt("io_error", diagnostic=f"cannot prepare output directory: {e.strerror}")

        log.debug("Starting engine", engine=engine.name, argv=argv, timeout=limit)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=workspace.root,
                start_new_session=sys.platform != "win32",
            )
        except OSError as e:
            log.warning(
                "Engine could not be started",
                engine=engine.name,
                executable=display_name(engine.executable),
                error=e.strerror or type(e).__name__,
            )
            return attempt("io_error", diagnostic=f"{type(e).__name__}: {e.strerror or e}")

        try:
            try:
                output = await asyncio.wait_for(self._wait(process), limit)
            except TimeoutError:
                await terminate_process(process, self.kill_grace)
                log.warning("Engine timed out", engine=engine.name, timeout=limit)
                return attempt("timeout", exit_code=process.returncode)
            except asyncio.CancelledError:
                await terminate_process(process, self.kill_grace)
                log.info("Engine attempt cancelled", engine=engine.name)
                raise
        finally:
            if process.returncode is None:
                await terminate_process(process, self.kill_grace)

        diagnostic = self._diagnostic(output)
        exit_code = process.returncode
        if exit_code != 0:
            return attempt("crashed", exit_code=exit_code, diagnostic=diagnostic)

        output_path = find_output(workspace.output_dir, workspace.stem, target_format)
        if output_path is None:
            return attempt(
                "crashed",
                exit_code=exit_code,
                diagnostic=diagnostic or "engine exited without producing output",
            )
        return attempt(
            "success", exit_code=exit_code, diagnostic=diagnostic, output_path=output_path
        )
