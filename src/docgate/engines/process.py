"""Process-tree termination for engine subprocesses.

Office suites fork helper processes (``soffice.bin``, ``oosplash``); killing
only the direct child leaves those running. Engines are started in their own
session on POSIX so the whole group can be signalled, and psutil catches any
descendant that escaped the group.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import sys

import anyio
import psutil

from docgate.config.constants import DEFAULT_KILL_GRACE
from docgate.utils.logging import get_logger

log = get_logger(__name__)


def kill_process_tree(pid: int) -> int:
    """Kill ``pid`` and all of its descendants.

    Returns:
        Number of processes signalled
    """
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return 0

    if sys.platform != "win32":
        with contextlib.suppress(ProcessLookupError, PermissionError):
            os.killpg(pid, signal.SIGKILL)

    killed = 0
    for proc in [*children, parent]:
        try:
            proc.kill()
            killed += 1
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            log.warning("Cannot kill engine helper process", pid=proc.pid)

    # Descendants are not our children; give them a moment to disappear
    psutil.wait_procs(children, timeout=1)
    return killed


async def terminate_process(
    process: asyncio.subprocess.Process, grace: float = DEFAULT_KILL_GRACE
) -> None:
    """Kill an engine process tree and wait for the direct child to exit."""
    if process.returncode is None:
        killed = await anyio.to_thread.run_sync(kill_process_tree, process.pid)
        log.debug("Engine process tree killed", pid=process.pid, killed=killed)

    try:
        await asyncio.wait_for(process.wait(), grace)
    except TimeoutError:
        log.error("Engine process did not exit after kill", pid=process.pid)
