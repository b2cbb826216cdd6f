import asyncio
import logging
from typing import Optional

from redis.asyncio import Redis

_logger = logging.getLogger(__name__)


class RedisConnector:
    """Lazily connects to Redis on first use and keeps the client until closed."""

    def __init__(self, url: str):
        self.url = url
        self._redis: Optional[Redis] = None
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def get(self) -> Redis:
        if self._redis is None:
            async with self._lock:
                if self._redis is None:
                    client = Redis.from_url(self.url, decode_responses=True)
                    try:
                        # Validate connection quickly
                        await client.ping()
                    except Exception as e:
                        _logger.error("Failed to connect to Redis: %s", str(e))
                        await client.aclose()
                        raise
                    self._redis = client
                    _logger.info("Connected to Redis at %s", client.connection_pool.connection_kwargs.get("host"))
        return self._redis

    def reset(self) -> None:
        self._redis = None

    async def close(self) -> None:
        if self._redis is not None:
            try:
                await self._redis.aclose()
            finally:
                self._redis = None
