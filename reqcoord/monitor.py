"""
Periodic coordinator diagnostics.
Uses APScheduler to log the stats snapshot and sweep old cache entries.
"""

from datetime import timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from reqcoord.services.coordinator import RequestCoordinator
from reqcoord.settings import Settings
from reqcoord.utils import log_job


class StatsMonitor:
    """Logs coordinator stats and sweeps the cache on an interval."""

    def __init__(
        self,
        coordinator: RequestCoordinator,
        interval_seconds: int = 10,
        sweep_max_age: timedelta = timedelta(minutes=5),
    ):
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds
        self.sweep_max_age = sweep_max_age
        self.scheduler = AsyncIOScheduler()
        self._is_running = False

    @classmethod
    def from_settings(cls, coordinator: RequestCoordinator, settings: Settings) -> "StatsMonitor":
        return cls(
            coordinator,
            interval_seconds=settings.stats_interval_seconds,
            sweep_max_age=timedelta(seconds=settings.cache_sweep_max_age),
        )

    @log_job
    def report_now(self) -> dict[str, Any]:
        """Log the current snapshot and return it."""
        snapshot = self.coordinator.stats().to_dict()
        open_groups = [
            group
            for group, breaker in snapshot["breakers"].items()
            if breaker["state"] == "OPEN"
        ]

        logger.info(
            f"Request coordinator: {snapshot['pending_count']} pending, "
            f"{snapshot['cached_count']} cached, {len(snapshot['breakers'])} breakers"
        )
        if open_groups:
            logger.warning(f"Open circuits: {', '.join(open_groups)}")

        return snapshot

    @log_job
    def sweep_now(self) -> int:
        """Drop cache entries older than the sweep age."""
        removed = self.coordinator.cache.cleanup_expired(self.sweep_max_age)
        if removed:
            logger.info(f"Cache sweep removed {removed} entries")
        return removed

    def start(self) -> None:
        """Start the scheduler. Must be called with a running event loop."""
        if self._is_running:
            logger.warning("Stats monitor is already running")
            return

        self.scheduler.add_job(
            self.report_now,
            trigger="interval",
            seconds=self.interval_seconds,
            id="coordinator_stats_job",
            name="Coordinator Stats",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.sweep_now,
            trigger="interval",
            seconds=self.sweep_max_age.total_seconds(),
            id="cache_sweep_job",
            name="Cache Sweep",
            replace_existing=True,
        )

        self.scheduler.start()
        self._is_running = True

        logger.info(f"Stats monitor started: reporting every {self.interval_seconds} seconds")

    def stop(self) -> None:
        if not self._is_running:
            logger.warning("Stats monitor is not running")
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Stats monitor stopped")

    def is_running(self) -> bool:
        return self._is_running
