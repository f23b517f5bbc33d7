"""
Tests for the FIFO Semaphore.

Tests cover:
1. Permit accounting
2. Bounded concurrency
3. FIFO hand-off to waiters
4. Release on error inside ``async with``
"""

import asyncio

import pytest

from vault_context.core.concurrency import Semaphore


class TestPermits:
    """Permit bookkeeping."""

    def test_requires_positive_permits(self):
        """Zero permits is rejected."""
        with pytest.raises(ValueError):
            Semaphore(0)

    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        """Acquire takes a permit, release returns it."""
        sem = Semaphore(2)
        await sem.acquire()
        assert sem.available == 1
        sem.release()
        assert sem.available == 2

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        """The context manager gives the permit back when the body raises."""
        sem = Semaphore(1)
        with pytest.raises(RuntimeError):
            async with sem:
                raise RuntimeError("boom")
        assert sem.available == 1


class TestConcurrency:
    """Bounded concurrency and ordering."""

    @pytest.mark.asyncio
    async def test_never_exceeds_permits(self):
        """With N permits at most N holders run at once."""
        sem = Semaphore(2)
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with sem:
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(6)))

        assert peak == 2
        assert sem.available == 2

    @pytest.mark.asyncio
    async def test_admits_n_immediately(self):
        """N callers get a permit without waiting; the next one waits."""
        sem = Semaphore(3)
        for _ in range(3):
            await sem.acquire()
        assert sem.available == 0

        blocked = asyncio.create_task(sem.acquire())
        await asyncio.sleep(0)
        assert not blocked.done()
        assert sem.waiting == 1

        sem.release()
        await blocked
        assert sem.waiting == 0

    @pytest.mark.asyncio
    async def test_waiters_resume_in_arrival_order(self):
        """Suspended callers complete strictly FIFO."""
        sem = Semaphore(1)
        await sem.acquire()
        order: list[int] = []

        async def worker(index: int):
            async with sem:
                order.append(index)

        tasks = [asyncio.create_task(worker(index)) for index in range(4)]
        await asyncio.sleep(0)
        assert sem.waiting == 4

        sem.release()
        await asyncio.gather(*tasks)

        assert order == [0, 1, 2, 3]
        assert sem.available == 1
