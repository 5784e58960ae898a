"""Admission control for resource-heavy work.

A counting semaphore with a strict FIFO wait queue. A released slot is
handed directly to the longest-waiting caller, so nobody can jump the
queue between a release and the waiter waking up.
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

logger = logging.getLogger("judge.runner.admission")


class AdmissionController:
    def __init__(self, max_concurrency: int, name: str = "default") -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.name = name
        self.max_concurrency = max_concurrency
        self._active = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    async def acquire(self) -> None:
        """Wait until a slot is granted."""
        if self._active < self.max_concurrency and not self.queued:
            self._active += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("admission[%s] queued (active=%d queued=%d)", self.name, self._active, self.queued)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over just before cancellation; pass it on.
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        """Free a slot, handing it to the oldest live waiter if there is one."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        if self._active <= 0:
            raise RuntimeError("release() called more times than acquire()")
        self._active -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "max_concurrency": self.max_concurrency,
            "active": self._active,
            "queued": self.queued,
            "available": self.max_concurrency - self._active,
        }
