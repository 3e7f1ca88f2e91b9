"""Tests for Settings and StatsMonitor."""

from datetime import timedelta

import pytest

from reqcoord.monitor import StatsMonitor
from reqcoord.settings import Settings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        """Defaults match the documented values."""
        settings = Settings()

        assert settings.api_root == "/api"
        assert settings.breaker_failure_threshold == 3
        assert settings.breaker_reset_timeout == 30
        assert settings.cache_ttl == 30
        assert settings.endpoint_group_depth == 1
        assert settings.debug_request_manager is False

    def test_from_env(self, monkeypatch):
        """Environment variables are read through their aliases."""
        monkeypatch.setenv("BREAKER_FAILURE_THRESHOLD", "5")
        monkeypatch.setenv("CACHE_TTL", "12.5")
        monkeypatch.setenv("DEBUG_REQUEST_MANAGER", "true")

        settings = Settings.from_env()

        assert settings.breaker_failure_threshold == 5
        assert settings.cache_ttl == 12.5
        assert settings.debug_request_manager is True


class TestStatsMonitor:
    """Tests for periodic diagnostics."""

    @pytest.mark.asyncio
    async def test_report_now_returns_snapshot(self, coordinator, key_for, make_request):
        """Report returns the stats dictionary."""
        await coordinator.execute(key_for("/api/courses"), make_request())
        monitor = StatsMonitor(coordinator)

        snapshot = monitor.report_now()

        assert snapshot["cached_count"] == 1
        assert snapshot["breakers"]["/api/courses"]["state"] == "CLOSED"

    @pytest.mark.asyncio
    async def test_sweep_now_removes_old_entries(
        self, coordinator, clock, key_for, make_request
    ):
        """Sweep drops entries older than the configured age."""
        await coordinator.execute(key_for("/api/courses"), make_request())
        clock.advance(600)
        monitor = StatsMonitor(coordinator, sweep_max_age=timedelta(minutes=5))

        assert monitor.sweep_now() == 1
        assert coordinator.stats().cached_count == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self, coordinator):
        """The scheduler starts once and stops cleanly."""
        settings = Settings.model_validate({"STATS_INTERVAL": 5})
        monitor = StatsMonitor.from_settings(coordinator, settings)

        monitor.start()
        assert monitor.is_running()
        assert monitor.scheduler.get_job("coordinator_stats_job") is not None
        assert monitor.scheduler.get_job("cache_sweep_job") is not None

        monitor.stop()
        assert not monitor.is_running()
