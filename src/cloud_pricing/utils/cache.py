"""
Caching utilities for multi-cloud price aggregation.

Holds the last-known-good aggregate snapshot and the per-provider snapshots
in memory. Entries carry a TTL that only governs eviction by the background
sweep: reads return whatever is stored, however old it is.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any

from ..providers.base import ProviderName

logger = logging.getLogger(__name__)

PRICING_DATA_KEY = "pricing_data"


def provider_cache_key(provider: ProviderName) -> str:
    """Cache key of a provider's last successful snapshot."""
    return f"{provider.key}_prices"


class CacheUnavailableError(Exception):
    """The cache store has been closed or cannot serve requests."""

    pass


@dataclass
class CacheEntry:
    """A stored value with its expiry."""

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class SnapshotCache:
    """In-memory snapshot store with per-key locking and TTL-based eviction."""

    def __init__(
        self,
        default_ttl: float = 21600,
        sweep_interval: float = 120,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize snapshot cache.

        Args:
            default_ttl: TTL in seconds applied when ``set`` is not given one
            sweep_interval: Seconds between background eviction sweeps
            clock: Monotonic time source, overridable in tests
        """
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._sweep_task: asyncio.Task | None = None
        self._closed = False
        self.evictions = 0

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _ensure_open(self):
        if self._closed:
            raise CacheUnavailableError("Snapshot cache is closed")

    def _make_entry(self, value: Any, ttl: float | None) -> CacheEntry:
        ttl = self.default_ttl if ttl is None else ttl
        return CacheEntry(value=value, expires_at=self._clock() + ttl)

    @property
    def is_available(self) -> bool:
        return not self._closed

    async def get(self, key: str) -> Any | None:
        """Get a value from the cache, ignoring its expiry."""
        self._ensure_open()
        async with self._lock_for(key):
            entry = self._entries.get(key)
            return entry.value if entry is not None else None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value, replacing whatever the slot held."""
        self._ensure_open()
        async with self._lock_for(key):
            self._entries[key] = self._make_entry(value, ttl)

    async def set_many(self, values: dict[str, Any], ttl: float | None = None) -> None:
        """Store several values as one logical update."""
        self._ensure_open()
        async with AsyncExitStack() as stack:
            # Fixed acquisition order so concurrent multi-key writers cannot deadlock
            for key in sorted(values):
                await stack.enter_async_context(self._lock_for(key))
            for key, value in values.items():
                self._entries[key] = self._make_entry(value, ttl)

    async def delete(self, key: str) -> bool:
        """Delete a key from the cache."""
        self._ensure_open()
        async with self._lock_for(key):
            return self._entries.pop(key, None) is not None

    async def sweep_expired(self) -> int:
        """Evict every entry whose TTL has elapsed. Returns the number evicted."""
        self._ensure_open()
        evicted = 0
        for key in list(self._entries):
            async with self._lock_for(key):
                entry = self._entries.get(key)
                if entry is not None and entry.is_expired(self._clock()):
                    del self._entries[key]
                    evicted += 1

        if evicted:
            self.evictions += evicted
            logger.info(f"Cache sweep evicted {evicted} expired entries")
        return evicted

    def keys(self) -> list[str]:
        """Get all keys in the cache."""
        return list(self._entries.keys())

    def size(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        return {
            "entries": len(self._entries),
            "expired_entries": sum(1 for entry in self._entries.values() if entry.is_expired(now)),
            "evictions": self.evictions,
            "default_ttl": self.default_ttl,
            "sweep_interval": self.sweep_interval,
            "available": self.is_available,
        }

    async def start(self):
        """Start the background eviction sweep."""
        self._ensure_open()
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="cache-sweep")
            logger.info(
                f"Cache initialized: TTL {self.default_ttl}s, sweep every {self.sweep_interval}s"
            )

    async def _sweep_loop(self):
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep_expired()
            except CacheUnavailableError:
                return

    async def close(self):
        """Stop the sweep and release all entries. Further use raises CacheUnavailableError."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        self._closed = True
        self._entries.clear()
        logger.info("Cache closed")
