"""
CacheManager - In-memory JSON store with per-key TTL.

Features:
- get_json / set_json / mget_json semantics of a key-value cache service
- Values stored serialised, so callers never share mutable state
- LRU eviction when the store is full
- Async-safe with a single lock
"""

import asyncio
import json
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Protocol

from loguru import logger


class JsonStore(Protocol):
    """Key-value JSON store used by the baseline service."""

    async def get_json(self, key: str) -> Any | None: ...

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def mget_json(self, keys: list[str]) -> list[Any | None]: ...

    async def cleanup_expired(self) -> int: ...


@dataclass
class CacheEntry:
    """Serialised value plus the timestamps used for expiry and LRU."""

    payload: str
    stored_at: float
    expires_at: float
    last_access: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheManager:
    """
    In-memory implementation of ``JsonStore``.

    Usage:
        cache = CacheManager(max_size=5000)
        await cache.set_json("baseline:news:global:1:3", entry, ttl_seconds=3600)
        entry = await cache.get_json("baseline:news:global:1:3")
    """

    def __init__(
        self,
        max_size: int = 10_000,
        clock: Callable[[], float] = time.time,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._clock = clock
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    async def get_json(self, key: str) -> Any | None:
        """Return the decoded value, or None when missing or expired."""
        async with self._lock:
            return self._get_locked(key)

    async def mget_json(self, keys: list[str]) -> list[Any | None]:
        """Return decoded values in key order (None for misses)."""
        async with self._lock:
            return [self._get_locked(key) for key in keys]

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        payload = json.dumps(value, default=str)
        now = self._clock()

        async with self._lock:
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_lru()

            self._memory[key] = CacheEntry(
                payload=payload,
                stored_at=now,
                expires_at=now + ttl_seconds,
                last_access=now,
            )
            self._log(f"SET: {key[:50]} (TTL: {ttl_seconds}s)")

    async def cleanup_expired(self) -> int:
        """Drop expired entries and return how many went."""
        now = self._clock()
        async with self._lock:
            expired_keys = [k for k, v in self._memory.items() if v.is_expired(now)]
            for key in expired_keys:
                del self._memory[key]

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    def _get_locked(self, key: str) -> Any | None:
        entry = self._memory.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        now = self._clock()
        if entry.is_expired(now):
            del self._memory[key]
            self._stats.misses += 1
            self._log(f"EXPIRED: {key[:50]}")
            return None

        entry.last_access = now
        self._stats.hits += 1
        return json.loads(entry.payload)

    def _evict_lru(self) -> None:
        """Drop the entry read or written longest ago."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].last_access,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def get_stats(self) -> "CacheStats":
        """Hit, miss and eviction counters with the current size."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Counters since the store was created."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = f"{self.hit_rate:.2%}"
        return data
