"""
RequestCoordinator - Single entry point combining breaker, cache and single-flight.

Decision procedure per call:
1. Circuit breaker for the key's endpoint group (fail fast when OPEN)
2. Fresh cache entry for the key
3. In-flight request for the key
4. New request, outcome recorded in breaker, cache and pending registry
"""

import asyncio
import functools
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from reqcoord.services.cache import CacheStore
from reqcoord.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from reqcoord.services.clock import Clock, SystemClock
from reqcoord.services.errors import CircuitOpenError
from reqcoord.services.keys import endpoint_group
from reqcoord.services.pending import PendingRegistry
from reqcoord.settings import Settings

T = TypeVar("T")

DEFAULT_CACHE_TTL = timedelta(seconds=30)


@dataclass
class BreakerSnapshot:
    """Point-in-time view of one breaker."""

    state: CircuitState
    failure_count: int


@dataclass
class CoordinatorStats:
    """Read-only snapshot for operational tooling."""

    pending_count: int
    cached_count: int
    breakers: dict[str, BreakerSnapshot] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending_count": self.pending_count,
            "cached_count": self.cached_count,
            "breakers": {
                group: {"state": snap.state.value, "failure_count": snap.failure_count}
                for group, snap in self.breakers.items()
            },
        }


class RequestCoordinator:
    """
    Coordinates requests through circuit breakers, a response cache and
    an in-flight registry.

    One instance is built by the application's composition root and
    passed to whatever issues requests; it is not a module global.

    Usage:
        coordinator = RequestCoordinator()

        key = generate_key(url, params)
        data = await coordinator.execute(
            key,
            lambda: fetch_json(url, params),
            cache_ttl=timedelta(minutes=1),
        )
    """

    def __init__(
        self,
        breaker_config: CircuitBreakerConfig | None = None,
        cache_max_size: int = 500,
        default_cache_ttl: timedelta = DEFAULT_CACHE_TTL,
        api_root: str = "/api",
        group_depth: int = 1,
        clock: Clock | None = None,
        debug: bool = False,
    ):
        self._clock = clock or SystemClock()
        self._default_cache_ttl = default_cache_ttl
        self._api_root = api_root
        self._group_depth = group_depth
        self._debug = debug

        self._cache = CacheStore(max_size=cache_max_size, clock=self._clock, debug=debug)
        self._pending = PendingRegistry(debug=debug)
        self._breakers = CircuitBreakerRegistry(breaker_config, clock=self._clock)

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> "RequestCoordinator":
        """Build a coordinator from application settings."""
        return cls(
            breaker_config=CircuitBreakerConfig(
                failure_threshold=settings.breaker_failure_threshold,
                reset_timeout=timedelta(seconds=settings.breaker_reset_timeout),
            ),
            cache_max_size=settings.cache_max_size,
            default_cache_ttl=timedelta(seconds=settings.cache_ttl),
            api_root=settings.api_root,
            group_depth=settings.endpoint_group_depth,
            clock=clock,
            debug=settings.debug_request_manager,
        )

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def pending(self) -> PendingRegistry:
        return self._pending

    @property
    def breakers(self) -> CircuitBreakerRegistry:
        return self._breakers

    def endpoint_group(self, key: str) -> str:
        """Endpoint group used for a key's circuit breaker."""
        return endpoint_group(key, api_root=self._api_root, depth=self._group_depth)

    async def execute(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
        cache: bool = True,
        cache_ttl: timedelta | None = None,
    ) -> T:
        """
        Run a request through the breaker, cache and single-flight checks.

        Args:
            key: Request identity, see ``generate_key``
            request_fn: Zero-argument callable returning an awaitable payload
            cache: Read from and write to the cache
            cache_ttl: Maximum age of a cached payload (default 30s)

        Returns:
            The payload, from cache, a shared in-flight request or a new one

        Raises:
            CircuitOpenError: The key's endpoint group is failing
            Exception: Whatever request_fn raised, unchanged
        """
        ttl = cache_ttl if cache_ttl is not None else self._default_cache_ttl
        group = self.endpoint_group(key)
        breaker = self._breakers.get(group)

        # Everything up to registering the pending entry runs without awaiting
        if not breaker.allow_request():
            if breaker.state == CircuitState.HALF_OPEN and key in self._pending:
                # Same request as the running trial, share its outcome
                return await asyncio.shield(self._pending.get(key))
            self._log(f"Circuit OPEN for {group}, blocking request: {key[:80]}")
            raise CircuitOpenError(group, breaker.get_time_until_reset() or 0)

        if cache:
            entry = self._cache.lookup(key, ttl)
            if entry is not None:
                return entry.data

        in_flight = self._pending.get(key)
        if in_flight is not None:
            return await asyncio.shield(in_flight)

        self._log(f"Executing NEW request: {key[:80]}")
        is_trial = breaker.state == CircuitState.HALF_OPEN
        breaker.begin_request()
        task = asyncio.ensure_future(self._run(key, group, request_fn, cache))
        task.add_done_callback(functools.partial(self._on_settled, key, breaker, is_trial))
        self._pending.register(key, task)
        return await asyncio.shield(task)

    async def _run(
        self,
        key: str,
        group: str,
        request_fn: Callable[[], Awaitable[T]],
        cache: bool,
    ) -> T:
        """Execute request_fn and record its outcome before any awaiter resumes."""
        breaker = self._breakers.get(group)
        task = asyncio.current_task()
        try:
            data = await request_fn()
        except Exception as e:
            self._log(f"Request failed: {key[:80]}: {type(e).__name__}: {e}")
            breaker.record_failure()
            self._pending.clear(key, task)
            raise

        self._log(f"Request completed: {key[:80]}")
        breaker.record_success()
        if cache:
            self._cache.set(key, data)
        self._pending.clear(key, task)
        return data

    def _on_settled(
        self,
        key: str,
        breaker: CircuitBreaker,
        is_trial: bool,
        task: asyncio.Future[Any],
    ) -> None:
        """
        Runs once the shared task is done, even if it was cancelled before
        its first step. Frees the trial slot on cancellation and marks a
        failure as retrieved when every awaiter has gone.
        """
        if task.cancelled():
            if is_trial:
                breaker.release_trial()
            self._pending.clear(key, task)
            return
        task.exception()

    def invalidate(self, pattern: str | None = None) -> int:
        """Drop cached entries containing pattern, or all entries. Pending and breakers untouched."""
        count = self._cache.invalidate(pattern)
        logger.debug(f"Invalidated {count} cache entries (pattern={pattern!r})")
        return count

    def stats(self) -> CoordinatorStats:
        """Snapshot of pending, cached and breaker state."""
        return CoordinatorStats(
            pending_count=len(self._pending),
            cached_count=len(self._cache),
            breakers={
                group: BreakerSnapshot(state=cb.state, failure_count=cb.failure_count)
                for group, cb in self._breakers.items()
            },
        )

    def get_health_status(self) -> dict[str, Any]:
        """Detailed status of every component."""
        return {
            "cache": self._cache.get_stats().to_dict(),
            "pending": self._pending.get_stats().to_dict(),
            "circuit_breakers": self._breakers.get_all_status(),
            "open_circuits": self._breakers.get_open_circuits(),
        }

    def reset_circuit(self, group: str) -> bool:
        """Reset the circuit breaker for an endpoint group."""
        return self._breakers.reset(group)

    async def close(self) -> None:
        """Cancel requests still in flight."""
        count = self._pending.cancel_all()
        logger.debug(f"RequestCoordinator closed ({count} in-flight requests cancelled)")

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[RequestCoordinator] {message}")
