"""
Counting semaphore with FIFO hand-off.

A released permit goes straight to the oldest waiter instead of returning to
the pool, so a newly arriving caller can never overtake a suspended one.
"""

import asyncio
from collections import deque


class Semaphore:
    """
    Bounded-concurrency gate for file system operations.

    Usage:
        sem = Semaphore(20)
        async with sem:
            ...

    Waiters are resumed strictly in arrival order. Cancellation of a waiting
    caller is not supported.
    """

    def __init__(self, permits: int):
        """
        Initialize semaphore.

        Args:
            permits: Maximum number of concurrent holders
        """
        if permits < 1:
            raise ValueError(f"Semaphore requires at least one permit, got {permits}")
        self._permits = permits
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def available(self) -> int:
        """Number of permits that can be taken without waiting."""
        return self._permits

    @property
    def waiting(self) -> int:
        """Number of suspended callers."""
        return len(self._waiters)

    async def acquire(self) -> None:
        """Take a permit, suspending until one is handed over if none is free."""
        if self._permits > 0:
            self._permits -= 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    def release(self) -> None:
        """Return a permit, resuming the oldest waiter if there is one."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._permits += 1

    async def __aenter__(self) -> "Semaphore":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()
