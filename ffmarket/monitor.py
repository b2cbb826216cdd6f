"""Health monitor for the payment server.

Polls ``/health`` on an interval and logs each result. After
``MAX_RETRIES`` consecutive failures it logs an alert and starts counting
again. It never restarts the server itself.
"""

import asyncio
import logging
import os
import signal
from typing import Any, Dict, Optional

import aiohttp

_logger = logging.getLogger("ffmarket.monitor")


class HealthMonitor:
    def __init__(self, server_url: str, interval: float = 30.0, max_retries: int = 3, timeout: float = 5.0):
        self.server_url = server_url.rstrip("/")
        self.interval = interval
        self.max_retries = max_retries
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.fail_count = 0
        self.alerts = 0

    async def check_health(self, session: aiohttp.ClientSession) -> Dict[str, Any]:
        async with session.get(f"{self.server_url}/health", timeout=self.timeout) as resp:
            if resp.status != 200:
                raise RuntimeError(f"HTTP {resp.status}")
            try:
                health = await resp.json(content_type=None)
            except ValueError:
                raise RuntimeError("Invalid JSON response")
        if not isinstance(health, dict):
            raise RuntimeError("Invalid JSON response")
        return health

    async def tick(self, session: aiohttp.ClientSession) -> bool:
        """Run one check; returns True when the server reported healthy."""
        try:
            health = await self.check_health(session)
            if health.get("status") != "ok":
                raise RuntimeError(f"Unhealthy status: {health.get('status')}")
        except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
            self.fail_count += 1
            _logger.error("Health check failed (%s/%s): %s", self.fail_count, self.max_retries, str(e) or type(e).__name__)
            if self.fail_count >= self.max_retries:
                self.alerts += 1
                _logger.critical("Server unresponsive after %s attempts! Check server logs and restart manually", self.max_retries)
                self.fail_count = 0
            return False

        if self.fail_count > 0:
            _logger.info("Server recovered | health=%s", health)
        else:
            _logger.info("Server healthy | version=%s database=%s", health.get("version"), health.get("database"))
        self.fail_count = 0
        return True

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        stop_event = stop_event or asyncio.Event()
        _logger.info(
            "Starting health monitor for %s | interval=%ss max_retries=%s",
            self.server_url, self.interval, self.max_retries,
        )
        async with aiohttp.ClientSession() as session:
            while not stop_event.is_set():
                await self.tick(session)
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
        _logger.info("Stopping health monitor...")


async def amain() -> None:
    monitor = HealthMonitor(
        os.getenv("SERVER_URL", "http://localhost:5000"),
        interval=float(os.getenv("CHECK_INTERVAL", "30")),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
    )
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass
    await monitor.run(stop_event)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(amain())


if __name__ == "__main__":
    main()
