"""Bounded-concurrency admission gate for the conversion pipeline.

A request must hold an admission slot for its whole fallback chain. The gate
keeps a single structure as the source of truth for capacity: an active
counter plus a FIFO deque of waiter futures. Releasing a slot hands it
directly to the oldest live waiter, so capacity is never briefly visible as
free while someone is queued.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import deque
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from docgate.config.constants import DEFAULT_MAX_CONCURRENT_CONVERSIONS, DEFAULT_MAX_QUEUE_SIZE
from docgate.exceptions import CapacityExceededError
from docgate.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class AdmissionStats:
    """Snapshot of admission gate state.

    Attributes:
        active: Slots currently held
        queued: Requests waiting for a slot
        max_concurrent: Active slot limit
        max_queue_size: Wait queue limit
        total_admitted: Requests that obtained a slot
        total_rejected: Requests turned away because the queue was full
        total_cancelled: Waiters cancelled before admission
        total_timed_out: Waiters whose bounded wait expired
    """

    active: int
    queued: int
    max_concurrent: int
    max_queue_size: int
    total_admitted: int = 0
    total_rejected: int = 0
    total_cancelled: int = 0
    total_timed_out: int = 0

    @property
    def available(self) -> int:
        """Slots that could be granted right now."""
        return max(self.max_concurrent - self.active, 0)

    @property
    def utilization(self) -> float:
        """Percentage of active slots in use."""
        return (self.active / self.max_concurrent) * 100


@dataclass
class AdmissionToken:
    """Proof of admission; hand it back to ``release`` exactly once."""

    token_id: int
    operation_id: str
    released: bool = False


class AdmissionController:
    """FIFO admission gate with an active limit and a bounded wait queue.

    Features:
    - Immediate admission while fewer than ``max_concurrent`` slots are held
    - FIFO wait queue of at most ``max_queue_size`` requests
    - Immediate ``CapacityExceededError`` when the queue is full
    - Optional bounded wait per ``acquire`` call
    - Cancelled or timed-out waiters leave the queue without leaking a slot

    All methods must be called from the event loop that owns the controller.

    Example usage:
        ```python
        gate = AdmissionController(max_concurrent=2, max_queue_size=10)

        async with gate.slot(request.operation_id):
            await run_conversion(request)
        ```
    """

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_CONVERSIONS,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
    ) -> None:
        """Initialize the admission gate.

        Args:
            max_concurrent: Maximum number of admitted requests
            max_queue_size: Maximum number of waiting requests (0 disables queueing)
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if max_queue_size < 0:
            raise ValueError("max_queue_size must not be negative")

        self._max_concurrent = max_concurrent
        self._max_queue_size = max_queue_size
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()
        self._token_ids = itertools.count(1)
        self._stats = AdmissionStats(
            active=0,
            queued=0,
            max_concurrent=max_concurrent,
            max_queue_size=max_queue_size,
        )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def max_queue_size(self) -> int:
        return self._max_queue_size

    @property
    def active(self) -> int:
        """Number of slots currently held."""
        return self._active

    @property
    def queued(self) -> int:
        """Number of requests waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def stats(self) -> AdmissionStats:
        """Get a snapshot of gate statistics."""
        self._stats.active = self._active
        self._stats.queued = self.queued
        return AdmissionStats(**vars(self._stats))

    async def acquire(self, operation_id: str, timeout: float | None = None) -> AdmissionToken:
        """Obtain an admission slot.

        Args:
            operation_id: Id of the request, used for logging
            timeout: Maximum seconds to wait in the queue (None waits until admitted)

        Returns:
            Token to pass to ``release``

        Raises:
            CapacityExceededError: If the queue is full or the wait expired
            asyncio.CancelledError: If the caller was cancelled while queued
        """
        if self._active < self._max_concurrent and not self.queued:
            self._active += 1
            return self._admit(operation_id, waited=False)

        if self.queued >= self._max_queue_size:
            self._stats.total_rejected += 1
            log.warning(
                "Admission rejected, queue full",
                operation_id=operation_id,
                active=self._active,
                queued=self.queued,
            )
            raise CapacityExceededError(self._max_concurrent, self._max_queue_size)

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        log.debug("Request queued for admission", operation_id=operation_id, queued=self.queued)

        try:
            if timeout is None:
                await waiter
            else:
                await asyncio.wait_for(asyncio.shield(waiter), timeout)
        except TimeoutError:
            self._abandon(waiter)
            self._stats.total_timed_out += 1
            log.warning("Admission wait expired", operation_id=operation_id, timeout=timeout)
            raise CapacityExceededError(
                self._max_concurrent,
                self._max_queue_size,
                f"No admission slot became free within {timeout}s",
            ) from None
        except asyncio.CancelledError:
            self._abandon(waiter)
            self._stats.total_cancelled += 1
            log.debug("Queued request cancelled", operation_id=operation_id)
            raise

        # The releasing side already counted this slot as ours
        return self._admit(operation_id, waited=True)

    def release(self, token: AdmissionToken) -> None:
        """Give a slot back and wake the next waiter, if any.

        Raises:
            ValueError: If the token was already released
        """
        if token.released:
            raise ValueError(f"admission token {token.token_id} already released")
        token.released = True
        self._release_slot()
        log.debug("Admission slot released", operation_id=token.operation_id, active=self._active)

    @asynccontextmanager
    async def slot(
        self, operation_id: str, timeout: float | None = None
    ) -> AsyncGenerator[AdmissionToken, None]:
        """Hold a slot for the duration of the block."""
        token = await self.acquire(operation_id, timeout=timeout)
        try:
            yield token
        finally:
            self.release(token)

    def _admit(self, operation_id: str, waited: bool) -> AdmissionToken:
        self._stats.total_admitted += 1
        token = AdmissionToken(token_id=next(self._token_ids), operation_id=operation_id)
        log.debug(
            "Admission granted",
            operation_id=operation_id,
            waited=waited,
            active=self._active,
        )
        return token

    def _release_slot(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand the slot straight to the oldest waiter; active count is unchanged
                waiter.set_result(None)
                return
        self._active -= 1

    def _abandon(self, waiter: asyncio.Future[None]) -> None:
        """Remove a waiter that gave up, returning a slot it may already have been handed."""
        handed_off = waiter.done() and not waiter.cancelled()
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass
        if not waiter.done():
            waiter.cancel()
        if handed_off:
            self._release_slot()
