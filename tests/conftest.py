"""Pytest fixtures for request coordinator tests."""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from reqcoord.services.circuit_breaker import CircuitBreakerConfig  # noqa: E402
from reqcoord.services.clock import FakeClock  # noqa: E402
from reqcoord.services.coordinator import RequestCoordinator  # noqa: E402
from reqcoord.services.keys import generate_key  # noqa: E402

BASE_URL = "https://learn.example.com"


@pytest.fixture
def key_for():
    """Request key for an API path on the test host."""

    def _key(path: str, params: dict | None = None) -> str:
        return generate_key(f"{BASE_URL}{path}", params)

    return _key


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def breaker_config():
    """Threshold 3, 30 second reset timeout."""
    return CircuitBreakerConfig(failure_threshold=3, reset_timeout=timedelta(seconds=30))


@pytest.fixture
def coordinator(clock, breaker_config):
    """Coordinator on the fake clock with debug logging enabled."""
    return RequestCoordinator(breaker_config=breaker_config, clock=clock, debug=True)


class CountingRequest:
    """Request function that counts invocations and can be held open."""

    def __init__(self, result=None, error: Exception | None = None, hold: bool = False):
        self.calls = 0
        self.result = {"ok": True} if result is None else result
        self.error = error
        self.gate = asyncio.Event()
        if not hold:
            self.gate.set()

    async def __call__(self):
        self.calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result

    def release(self) -> None:
        self.gate.set()


@pytest.fixture
def make_request():
    """Factory for CountingRequest."""
    return CountingRequest
