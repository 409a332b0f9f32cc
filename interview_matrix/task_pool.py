# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Bounded task pool.

Limits the number of concurrently running coroutines against an external
service. Submissions beyond the capacity wait in a FIFO queue and are admitted
one by one as running tasks complete.

All bookkeeping happens on the event loop thread between awaits, so no lock is
needed around the counters and the queue.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class TaskPool:
    """
    Fixed-capacity FIFO concurrency limiter.

    Args:
        capacity:
            Maximum number of concurrently running tasks (>= 1).
        name:
            Name used in log messages.

    Raises:
        ValueError:
            If the capacity is smaller than 1.
    """

    def __init__(self, capacity: int, name: str = "pool") -> None:
        if capacity < 1:
            raise ValueError(f"Task pool capacity must be >= 1, got {capacity}")

        self.capacity = capacity
        self.name = name

        self._running = 0
        self._peak_running = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def running(self) -> int:
        return self._running

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    @property
    def peak_running(self) -> int:
        return self._peak_running

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Run a task once a slot is free.

        Args:
            task:
                Zero-argument callable returning an awaitable.

        Returns:
            The task's result. Exceptions raised by the task propagate to the
            caller after the slot has been released.
        """

        await self._acquire()
        try:
            return await task()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._running < self.capacity and not self._waiters:
            self._admit()
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("%s: task queued (running=%d, queued=%d)", self.name, self._running, len(self._waiters))

        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over right before the cancellation.
                self._release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

    def _admit(self) -> None:
        self._running += 1
        self._peak_running = max(self._peak_running, self._running)

    def _release(self) -> None:
        self._running -= 1
        self._admit_next()

    def _admit_next(self) -> None:
        # Hand the free slot directly to the oldest waiter so that newer
        # submissions cannot overtake queued ones.
        while self._waiters and self._running < self.capacity:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            self._admit()
            waiter.set_result(None)
