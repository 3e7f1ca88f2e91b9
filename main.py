"""
Request coordinator entry point.
Builds one coordinator, fetches the given API paths through it and logs stats.

    python main.py /api/wallet/balance /api/leaderboard
"""

import asyncio
import sys

from loguru import logger

from reqcoord.monitor import StatsMonitor
from reqcoord.services import ApiClient, CircuitOpenError, RequestCoordinator, ServiceError
from reqcoord.settings import Settings


async def fetch_all(client: ApiClient, paths: list[str]) -> None:
    """Fetch every path twice concurrently; duplicates share one request."""
    results = await asyncio.gather(
        *(client.get(path) for path in paths + paths),
        return_exceptions=True,
    )
    for path, result in zip(paths + paths, results):
        if isinstance(result, CircuitOpenError):
            logger.warning(f"{path}: service temporarily unavailable ({result})")
        elif isinstance(result, ServiceError):
            logger.error(f"{path}: {result}")
        elif isinstance(result, Exception):
            logger.error(f"{path}: unexpected {type(result).__name__}: {result}")
        else:
            logger.info(f"{path}: OK")


async def main(paths: list[str]) -> None:
    settings = Settings.from_env()
    logger.info(f"Starting request coordinator against {settings.api_base_url}...")

    coordinator = RequestCoordinator.from_settings(settings)
    client = ApiClient.from_settings(coordinator, settings)
    monitor = StatsMonitor.from_settings(coordinator, settings)

    try:
        monitor.start()
        await fetch_all(client, paths)
        monitor.report_now()
    finally:
        monitor.stop()
        await client.close()
        await coordinator.close()
        logger.info("Request coordinator stopped")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1:]))
