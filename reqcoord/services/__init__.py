"""
Request coordination layer - resilience patterns for remote API calls.

Provides:
- CacheStore: Short-lived response cache with per-call TTL
- PendingRegistry: Shares one in-flight request among concurrent callers
- CircuitBreaker: Isolates failing endpoint groups
- RequestCoordinator: Single entry point combining all three
- ApiClient: httpx transport routed through a coordinator
"""

from reqcoord.services.errors import (
    ServiceError,
    CircuitOpenError,
    RequestTimeoutError,
)
from reqcoord.services.clock import Clock, SystemClock, FakeClock
from reqcoord.services.keys import generate_key, endpoint_group
from reqcoord.services.cache import CacheStore, CacheEntry, CacheStats
from reqcoord.services.pending import PendingRegistry, PendingStats
from reqcoord.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from reqcoord.services.coordinator import (
    BreakerSnapshot,
    CoordinatorStats,
    RequestCoordinator,
)
from reqcoord.services.client import ApiClient

__all__ = [
    # Errors
    "ServiceError",
    "CircuitOpenError",
    "RequestTimeoutError",
    # Time
    "Clock",
    "SystemClock",
    "FakeClock",
    # Keys
    "generate_key",
    "endpoint_group",
    # Cache
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    # Pending
    "PendingRegistry",
    "PendingStats",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Coordinator
    "BreakerSnapshot",
    "CoordinatorStats",
    "RequestCoordinator",
    # Client
    "ApiClient",
]
