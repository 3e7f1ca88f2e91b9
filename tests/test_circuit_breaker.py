"""Tests for CircuitBreaker and CircuitBreakerRegistry."""

from reqcoord.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)

GROUP = "/api/wallet"


def tripped(clock, config) -> CircuitBreaker:
    cb = CircuitBreaker(GROUP, config, clock=clock)
    for _ in range(config.failure_threshold):
        cb.record_failure()
    return cb


class TestClosedState:
    """Tests for CLOSED behaviour."""

    def test_starts_closed(self, clock, breaker_config):
        """New breakers let requests through."""
        cb = CircuitBreaker(GROUP, breaker_config, clock=clock)

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.allow_request()

    def test_opens_at_threshold(self, clock, breaker_config):
        """Three failures open the circuit."""
        cb = CircuitBreaker(GROUP, breaker_config, clock=clock)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED

        cb.record_failure()

        assert cb.state == CircuitState.OPEN
        assert cb.last_failure_time == clock.now()

    def test_success_decrements_by_one(self, clock, breaker_config):
        """Each success forgives exactly one failure."""
        cb = CircuitBreaker(GROUP, breaker_config, clock=clock)
        cb.record_failure()
        cb.record_failure()

        cb.record_success()
        assert cb.failure_count == 1

        cb.record_success()
        cb.record_success()
        assert cb.failure_count == 0

    def test_interleaved_success_delays_opening(self, clock, breaker_config):
        """fail, fail, ok, fail leaves the circuit closed at count 2."""
        cb = CircuitBreaker(GROUP, breaker_config, clock=clock)
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 2


class TestOpenState:
    """Tests for OPEN and the move to HALF_OPEN."""

    def test_rejects_before_timeout(self, clock, breaker_config):
        """Requests are refused until the reset timeout elapses."""
        cb = tripped(clock, breaker_config)
        clock.advance(29.9)

        assert not cb.allow_request()
        assert cb.state == CircuitState.OPEN
        assert 0 < cb.get_time_until_reset() <= 0.2

    def test_moves_to_half_open_on_next_request(self, clock, breaker_config):
        """The timeout alone does not change state; the next request does."""
        cb = tripped(clock, breaker_config)
        clock.advance(30)

        assert cb.state == CircuitState.OPEN
        assert cb.allow_request()
        assert cb.state == CircuitState.HALF_OPEN

    def test_status_dict(self, clock, breaker_config):
        """Status reports state and counters."""
        cb = tripped(clock, breaker_config)

        status = cb.get_status()

        assert status["state"] == "OPEN"
        assert status["failure_count"] == 3
        assert status["time_until_reset"] == 30


class TestHalfOpenState:
    """Tests for the single recovery trial."""

    def test_only_one_trial(self, clock, breaker_config):
        """A second request is refused while the trial runs."""
        cb = tripped(clock, breaker_config)
        clock.advance(31)
        assert cb.allow_request()
        cb.begin_request()

        assert cb.trial_in_flight
        assert not cb.allow_request()

    def test_trial_success_closes(self, clock, breaker_config):
        """A good trial resets the count."""
        cb = tripped(clock, breaker_config)
        clock.advance(31)
        cb.allow_request()
        cb.begin_request()

        cb.record_success()

        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_trial_failure_reopens_and_restarts_timer(self, clock, breaker_config):
        """A bad trial reopens with a fresh timeout."""
        cb = tripped(clock, breaker_config)
        clock.advance(31)
        cb.allow_request()
        cb.begin_request()

        cb.record_failure()

        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 4
        clock.advance(29)
        assert not cb.allow_request()
        clock.advance(1)
        assert cb.allow_request()

    def test_release_trial_frees_slot(self, clock, breaker_config):
        """A trial that ends without an outcome lets the next one through."""
        cb = tripped(clock, breaker_config)
        clock.advance(31)
        cb.allow_request()
        cb.begin_request()

        cb.release_trial()

        assert cb.state == CircuitState.HALF_OPEN
        assert cb.allow_request()


class TestRegistry:
    """Tests for CircuitBreakerRegistry."""

    def test_lazy_creation_per_group(self, clock, breaker_config):
        """One breaker per group, created on first use."""
        registry = CircuitBreakerRegistry(breaker_config, clock=clock)

        assert registry.find(GROUP) is None
        cb = registry.get(GROUP)

        assert registry.get(GROUP) is cb
        assert registry.get("/api/courses") is not cb

    def test_open_circuits_and_reset(self, clock, breaker_config):
        """Open groups are listed and can be reset."""
        registry = CircuitBreakerRegistry(breaker_config, clock=clock)
        for _ in range(3):
            registry.get(GROUP).record_failure()
        registry.get("/api/courses")

        assert registry.get_open_circuits() == [GROUP]

        assert registry.reset(GROUP)
        assert not registry.reset("/api/unknown")
        assert registry.get(GROUP).state == CircuitState.CLOSED
        assert registry.get_all_status()[GROUP]["failure_count"] == 0
