"""
CacheStore - In-memory response cache with per-lookup TTL.

Features:
- Freshness is decided by the caller's TTL at read time (lazy expiry)
- Bounded size, oldest insertion evicted first
- Substring invalidation
- Optional sweep of entries older than a maximum age
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from loguru import logger

from reqcoord.services.clock import Clock, SystemClock

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with its insertion time."""

    key: str
    data: T
    inserted_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.inserted_at

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        """Fresh while strictly younger than the TTL."""
        return self.age(now) < ttl


class CacheStore:
    """
    Response cache keyed by request identity.

    Methods are synchronous: they never suspend, so a lookup and the
    decision that follows it happen in one step on the event loop.

    Usage:
        cache = CacheStore(max_size=500)

        data = cache.get(key, ttl=timedelta(seconds=30))
        if data is None:
            data = await fetch()
            cache.set(key, data)
    """

    def __init__(
        self,
        max_size: int = 500,
        clock: Clock | None = None,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._clock = clock or SystemClock()
        self._debug = debug
        self._stats = CacheStats()

    def get(self, key: str, ttl: timedelta) -> Any | None:
        """
        Get a fresh value from cache.

        Returns the stored data if it is younger than ``ttl``, None otherwise.
        Expired entries stay in place until overwritten, invalidated or swept.
        """
        entry = self.lookup(key, ttl)
        return entry.data if entry is not None else None

    def lookup(self, key: str, ttl: timedelta) -> CacheEntry[Any] | None:
        """Like ``get`` but returns the entry, so a cached None is still a hit."""
        entry = self._memory.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:80]}")
            return None

        now = self._clock.now()
        if not entry.is_fresh(now, ttl):
            self._stats.expired += 1
            self._log(f"EXPIRED: {key[:80]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:80]} (age: {entry.age(now).total_seconds():.0f}s)")
        return entry

    def set(self, key: str, data: Any) -> None:
        """Store data for a key, replacing any previous entry."""
        if key not in self._memory and len(self._memory) >= self._max_size:
            self._evict_oldest()

        self._memory[key] = CacheEntry(key=key, data=data, inserted_at=self._clock.now())
        self._log(f"SET: {key[:80]}")

    def invalidate(self, pattern: str | None = None) -> int:
        """
        Invalidate entries whose key contains a pattern.

        Args:
            pattern: Substring to match in keys; None clears everything

        Returns:
            Number of entries invalidated
        """
        if pattern is None:
            count = len(self._memory)
            self._memory.clear()
            self._log(f"CLEAR: {count} entries removed")
            return count

        keys_to_delete = [k for k in self._memory if pattern in k]
        for key in keys_to_delete:
            del self._memory[key]

        if keys_to_delete:
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def cleanup_expired(self, max_age: timedelta) -> int:
        """Remove entries older than max_age. Returns count of removed entries."""
        now = self._clock.now()
        expired_keys = [k for k, v in self._memory.items() if not v.is_fresh(now, max_age)]
        for key in expired_keys:
            del self._memory[key]

        if expired_keys:
            self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

        return len(expired_keys)

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: str) -> bool:
        return key in self._memory

    def _evict_oldest(self) -> None:
        """Evict the oldest inserted entry."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].inserted_at,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:80]}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheStore] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses + self.expired
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
