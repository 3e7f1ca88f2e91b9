"""
PendingRegistry - Tracks in-flight requests so concurrent callers share one outcome.

The registry only stores futures. Checking for an entry and registering a
new one are plain synchronous calls, so as long as the caller does not
await between them no other task can slip in and start a duplicate request.
A port to real threads would need a lock around that check-then-register.
"""

import asyncio
from typing import Any

from loguru import logger


class PendingRegistry:
    """
    In-flight request registry keyed by request identity.

    Usage:
        pending = PendingRegistry()

        future = pending.get(key)
        if future is None:
            future = asyncio.ensure_future(do_request())
            pending.register(key, future)
        return await future
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Future[Any]] = {}
        self._debug = debug
        self._stats = PendingStats()

    def get(self, key: str) -> asyncio.Future[Any] | None:
        """Get the in-flight future for a key, recording a dedup hit if present."""
        future = self._in_flight.get(key)
        if future is not None:
            self._stats.deduplicated += 1
            self._log(f"DEDUPE: Waiting for in-flight request: {key[:80]}")
        return future

    def register(self, key: str, future: asyncio.Future[Any]) -> None:
        """Register a newly started request."""
        if key in self._in_flight:
            raise ValueError(f"Request already in flight: {key}")
        self._in_flight[key] = future
        self._stats.total += 1
        self._log(f"NEW: Starting request: {key[:80]}")

    def clear(self, key: str, future: asyncio.Future[Any] | None = None) -> None:
        """
        Forget a settled request so the next call starts fresh.

        When ``future`` is given the entry is only removed if it is still
        that future, so a late settlement never drops a newer request.
        """
        current = self._in_flight.get(key)
        if current is None or (future is not None and current is not future):
            return
        del self._in_flight[key]
        self._log(f"DONE: Request settled: {key[:80]}")

    def cancel_all(self) -> int:
        """Cancel all in-flight requests."""
        count = len(self._in_flight)
        for future in self._in_flight.values():
            future.cancel()
        self._in_flight.clear()
        if count:
            self._log(f"CANCEL_ALL: {count} requests cancelled")
        return count

    def __len__(self) -> int:
        return len(self._in_flight)

    def __contains__(self, key: str) -> bool:
        return key in self._in_flight

    def get_stats(self) -> "PendingStats":
        """Get deduplication statistics."""
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[PendingRegistry] {message}")


class PendingStats:
    """Statistics for request deduplication."""

    def __init__(self):
        self.total: int = 0  # Requests actually started
        self.deduplicated: int = 0  # Callers that joined an in-flight request
        self.in_flight: int = 0

    @property
    def dedup_rate(self) -> float:
        """Calculate deduplication rate."""
        total = self.total + self.deduplicated
        if total == 0:
            return 0.0
        return self.deduplicated / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_requests": self.total,
            "deduplicated": self.deduplicated,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }
