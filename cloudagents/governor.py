"""
Request governor for the Cloud Agents API.

Every outbound call to the agent API is admitted through a RequestGovernor,
which bounds concurrency and enforces a minimum spacing between the start
times of consecutive calls. Waiting callers are admitted by priority, then
in arrival order. It does not retry or interpret failures.
"""

import asyncio
import heapq
import itertools
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TypeVar

from cloudagents.exceptions import RequestDroppedError
from cloudagents.logging import get_logger

T = TypeVar("T")

logger = get_logger("http")


class Priority(IntEnum):
    """Admission priority. Lower values are admitted first."""

    USER_ACTION = 1  # Launch, follow-up, stop, delete
    CRITICAL = 5  # Credential validation
    NORMAL = 10  # Regular fetches
    PREFETCH = 20  # Background warming


@dataclass
class GovernorConfig:
    """Limits applied to outbound requests."""

    max_concurrent: int = 3
    min_spacing: float = 0.1  # Seconds between consecutive request starts
    poll_interval: float = 0.05  # Re-check interval while a caller cannot start
    # A waiter passed over by this many younger callers moves ahead of every lane
    max_overtakes: int = 10


@dataclass
class GovernorStats:
    """Point-in-time view of governor bookkeeping."""

    in_flight: int
    waiting: int


@dataclass(order=True)
class _Waiter:
    priority: int
    sequence: int
    dropped: bool = field(default=False, compare=False)
    overtaken: int = field(default=0, compare=False)


class RequestGovernor:
    """
    Admits outbound operations under shared limits.

    Handles:
    - At most ``max_concurrent`` operations running at once
    - At least ``min_spacing`` seconds between consecutive starts
    - Priority admission, FIFO among callers of equal priority
    - No starvation: a waiter overtaken ``max_overtakes`` times is promoted
    - Dropping queued background work with ``clear_low_priority()``

    The in-flight count, the queue and the last start time are only touched
    between suspension points, so they are consistent for all tasks on the loop.
    """

    def __init__(self, config: GovernorConfig | None = None) -> None:
        self.config = config or GovernorConfig()
        self._in_flight = 0
        self._last_start: float | None = None
        self._queue: list[_Waiter] = []
        self._sequence = itertools.count()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def stats(self) -> GovernorStats:
        return GovernorStats(in_flight=self._in_flight, waiting=len(self._queue))

    async def enqueue(
        self,
        operation: Callable[[], Awaitable[T]],
        priority: Priority = Priority.NORMAL,
    ) -> T:
        """
        Run ``operation`` once a slot is free and the spacing has elapsed.

        Args:
            operation: Zero-argument callable returning an awaitable
            priority: Admission priority relative to other waiting callers

        Returns:
            Whatever the operation returns; its exceptions propagate unchanged

        Raises:
            RequestDroppedError: If the caller was dropped while still queued
        """
        await self._admit(priority)
        try:
            return await operation()
        finally:
            self._in_flight -= 1

    def clear_low_priority(self) -> int:
        """
        Drop every queued caller below NORMAL priority.

        Running operations are not affected. Each dropped caller raises
        RequestDroppedError.

        Returns:
            Number of callers dropped
        """
        kept: list[_Waiter] = []
        dropped = 0
        for waiter in self._queue:
            if waiter.priority > Priority.NORMAL:
                waiter.dropped = True
                dropped += 1
            else:
                kept.append(waiter)
        heapq.heapify(kept)
        self._queue = kept
        if dropped:
            logger.debug("Dropped %d low priority requests", dropped)
        return dropped

    def _age_waiters(self, admitted: _Waiter) -> None:
        promoted = False
        for waiter in self._queue:
            if waiter.sequence < admitted.sequence:
                waiter.overtaken += 1
                if waiter.overtaken >= self.config.max_overtakes and waiter.priority > 0:
                    waiter.priority = 0
                    promoted = True
        if promoted:
            heapq.heapify(self._queue)

    async def _admit(self, priority: Priority) -> None:
        waiter = _Waiter(int(priority), next(self._sequence))
        heapq.heappush(self._queue, waiter)
        try:
            while True:
                if waiter.dropped:
                    raise RequestDroppedError()

                if self._queue[0] is not waiter or self._in_flight >= self.config.max_concurrent:
                    await asyncio.sleep(self.config.poll_interval)
                    continue

                if self._last_start is not None:
                    delay = self._last_start + self.config.min_spacing - time.monotonic()
                    if delay > 0:
                        # A higher priority caller may arrive meanwhile
                        await asyncio.sleep(min(delay, self.config.poll_interval))
                        continue

                # No suspension between the checks above and this update
                heapq.heappop(self._queue)
                self._age_waiters(waiter)
                self._in_flight += 1
                self._last_start = time.monotonic()
                break
        except BaseException:
            if not waiter.dropped and waiter in self._queue:
                self._queue.remove(waiter)
                heapq.heapify(self._queue)
            raise

        logger.debug(
            "Request admitted (priority=%d, in_flight=%d, waiting=%d)",
            priority,
            self._in_flight,
            len(self._queue),
        )
