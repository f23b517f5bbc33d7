"""
LRU cache of collect_context payloads.

Keys are built from the request shape and a hash of the candidate documents'
content, so any content change produces a new key. Concurrent requests for
the same key compute the payload once; the later ones observe a hit.
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable

from vault_context.models.context import CollectContextPayload
from vault_context.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ENTRIES = 200

PayloadFactory = Callable[[], Awaitable[CollectContextPayload]]


class CollectContextCache:
    """
    Bounded least-recently-used payload cache with single-flight fills.

    Stored payloads are deep-copied on the way in and out, so callers can
    trim or annotate the payload they get back without touching the cache.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        """
        Initialize cache.

        Args:
            max_entries: Capacity before the least recently used entry is evicted
        """
        self.max_entries = max_entries
        self._entries: OrderedDict[str, tuple[float, CollectContextPayload]] = OrderedDict()
        self._key_locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> CollectContextPayload | None:
        """
        Cached payload for a key, marking it most recently used.

        Args:
            key: Cache key

        Returns:
            Copy of the cached payload, or None
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries.move_to_end(key)
        return entry[1].model_copy(deep=True)

    def set(self, key: str, payload: CollectContextPayload) -> None:
        """
        Store a payload, evicting the least recently used entries over capacity.

        Args:
            key: Cache key
            payload: Payload to store
        """
        self._entries[key] = (time.time(), payload.model_copy(deep=True))
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted collect_context cache entry {evicted[:80]}")

    async def get_or_create(
        self, key: str, factory: PayloadFactory
    ) -> tuple[CollectContextPayload, bool]:
        """
        Return the cached payload or build and store it.

        Callers racing on the same key wait for the first one to finish and
        then read its entry.

        Args:
            key: Cache key
            factory: Coroutine function producing the payload on a miss

        Returns:
            (payload copy, hit)
        """
        cached = self.get(key)
        if cached is not None:
            return cached, True

        lock = self._key_locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                cached = self.get(key)
                if cached is not None:
                    return cached, True

                payload = await factory()
                self.set(key, payload)
                return payload.model_copy(deep=True), False
        finally:
            if not lock.locked():
                self._key_locks.pop(key, None)

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._key_locks.clear()
