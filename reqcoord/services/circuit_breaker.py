"""
CircuitBreaker - Stops sending requests to a failing endpoint group.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Group is failing, requests are rejected without being attempted
- HALF_OPEN: One trial request is testing recovery

Transitions:
- CLOSED → OPEN: When failure_count reaches failure_threshold
- OPEN → HALF_OPEN: On the first request after reset_timeout has elapsed
- HALF_OPEN → CLOSED: Trial succeeded
- HALF_OPEN → OPEN: Trial failed (timer restarts)

Successes while CLOSED forgive one failure at a time rather than resetting
the count, so a run of failures with the odd success in between still trips.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from loguru import logger

from reqcoord.services.clock import Clock, SystemClock


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Testing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 3  # Failures before opening
    reset_timeout: timedelta = timedelta(seconds=30)  # Time before a trial is allowed


class CircuitBreaker:
    """
    Circuit breaker for a single endpoint group.

    Usage:
        cb = CircuitBreaker("/api/wallet")

        if not cb.allow_request():
            raise CircuitOpenError(cb.endpoint_group, cb.get_time_until_reset() or 0)

        cb.begin_request()
        try:
            result = await make_request()
            cb.record_success()
            return result
        except Exception:
            cb.record_failure()
            raise
    """

    def __init__(
        self,
        endpoint_group: str,
        config: CircuitBreakerConfig | None = None,
        clock: Clock | None = None,
    ):
        self.endpoint_group = endpoint_group
        self.config = config or CircuitBreakerConfig()
        self._clock = clock or SystemClock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: datetime | None = None
        self._trial_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current state. Reading it never triggers a transition."""
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_time(self) -> datetime | None:
        return self._last_failure_time

    @property
    def trial_in_flight(self) -> bool:
        return self._trial_in_flight

    def allow_request(self) -> bool:
        """
        Check if a request may proceed.

        An OPEN breaker whose reset timeout has elapsed moves to HALF_OPEN
        here, before the request runs. HALF_OPEN admits only one trial.
        """
        if self._state == CircuitState.CLOSED:
            return True

        if self._state == CircuitState.OPEN:
            if self._reset_timeout_elapsed():
                self._half_open()
                return True
            return False

        return not self._trial_in_flight

    def begin_request(self) -> None:
        """Mark that an admitted request is about to execute."""
        if self._state == CircuitState.HALF_OPEN:
            self._trial_in_flight = True

    def release_trial(self) -> None:
        """Free the HALF_OPEN trial slot when a trial ends without an outcome."""
        self._trial_in_flight = False

    def record_success(self) -> None:
        """Record a successful request."""
        if self._state == CircuitState.HALF_OPEN:
            self._close()
        elif self._state == CircuitState.CLOSED and self._failure_count > 0:
            self._failure_count -= 1
            logger.debug(
                f"Circuit breaker '{self.endpoint_group}' success, "
                f"failure count reduced to {self._failure_count}"
            )

    def record_failure(self) -> None:
        """Record a failed request."""
        self._failure_count += 1
        self._last_failure_time = self._clock.now()

        if self._state == CircuitState.HALF_OPEN:
            # Any failure in half-open reopens the circuit
            self._open()
        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self.config.failure_threshold:
                self._open()

    def _reset_timeout_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return self._clock.now() - self._last_failure_time >= self.config.reset_timeout

    def _open(self) -> None:
        """Transition to OPEN state."""
        self._state = CircuitState.OPEN
        self._trial_in_flight = False
        logger.warning(
            f"Circuit breaker '{self.endpoint_group}' OPENED after {self._failure_count} failures"
        )

    def _half_open(self) -> None:
        """Transition to HALF_OPEN state."""
        self._state = CircuitState.HALF_OPEN
        self._trial_in_flight = False
        logger.info(f"Circuit breaker '{self.endpoint_group}' transitioned to HALF_OPEN")

    def _close(self) -> None:
        """Transition to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._trial_in_flight = False
        logger.info(f"Circuit breaker '{self.endpoint_group}' CLOSED (recovered)")

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = None
        self._trial_in_flight = False
        logger.info(f"Circuit breaker '{self.endpoint_group}' manually reset")

    def get_time_until_reset(self) -> float | None:
        """Get seconds until an OPEN circuit admits a trial."""
        if self._state != CircuitState.OPEN or not self._last_failure_time:
            return None

        reset_at = self._last_failure_time + self.config.reset_timeout
        remaining = (reset_at - self._clock.now()).total_seconds()
        return max(0, remaining)

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        return {
            "endpoint_group": self.endpoint_group,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "last_failure": (
                self._last_failure_time.isoformat() if self._last_failure_time else None
            ),
            "time_until_reset": self.get_time_until_reset(),
        }


class CircuitBreakerRegistry:
    """
    Registry holding one circuit breaker per endpoint group.

    Usage:
        registry = CircuitBreakerRegistry()
        cb = registry.get("/api/wallet")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Clock | None = None,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock or SystemClock()

    def get(
        self,
        endpoint_group: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create the circuit breaker for an endpoint group."""
        if endpoint_group not in self._breakers:
            self._breakers[endpoint_group] = CircuitBreaker(
                endpoint_group,
                config or self._default_config,
                clock=self._clock,
            )
        return self._breakers[endpoint_group]

    def find(self, endpoint_group: str) -> CircuitBreaker | None:
        """Look up a breaker without creating one."""
        return self._breakers.get(endpoint_group)

    def items(self) -> list[tuple[str, CircuitBreaker]]:
        return list(self._breakers.items())

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {group: cb.get_status() for group, cb in self._breakers.items()}

    def reset(self, endpoint_group: str) -> bool:
        """Reset a specific circuit breaker."""
        if endpoint_group in self._breakers:
            self._breakers[endpoint_group].reset()
            return True
        return False

    def get_open_circuits(self) -> list[str]:
        """Get list of endpoint groups with open circuits."""
        return [
            group
            for group, cb in self._breakers.items()
            if cb.state == CircuitState.OPEN
        ]
