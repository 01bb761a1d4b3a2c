# tagask/services/redis_client.py
"""
Pooled async Redis client for the shared leaderboard and history collections.
Only used when STORAGE_BACKEND=redis.
"""

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.asyncio.lock import Lock

from tagask.config import settings
from tagask.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MAX_CONNECTIONS = 20


class FastRedisClient:
    def __init__(self, url: str | None = None):
        self.url = url
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Create the pool and prove it works with a PING. Safe to call twice."""
        if self._initialized:
            return

        redis_url = self.url or settings.REDIS_URL
        if not redis_url:
            raise RuntimeError("REDIS_URL not configured")

        # Log only the scheme and host, never credentials
        logger.info("Connecting to Redis", host=redis_url.split("@")[-1].split("/")[0])

        try:
            self.pool = ConnectionPool.from_url(
                redis_url,
                max_connections=MAX_CONNECTIONS,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
        except Exception as e:
            logger.error("Redis connection failed", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

        self._initialized = True
        logger.info("Redis client ready", max_connections=MAX_CONNECTIONS)

    async def close(self):
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis used before startup, initializing lazily")
            await self.initialize()

    async def ping(self) -> bool:
        """True when Redis answers; never raises."""
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def get(self, key: str) -> str | None:
        # Errors propagate so an outage is never mistaken for an empty collection
        await self._ensure_initialized()
        return await self.client.get(key) or None

    async def set(self, key: str, value: str) -> bool:
        await self._ensure_initialized()
        return bool(await self.client.set(key, value))

    async def lock(self, name: str, timeout: float, blocking_timeout: float) -> Lock:
        """Distributed lock shared by every process using this Redis."""
        await self._ensure_initialized()
        return self.client.lock(name, timeout=timeout, blocking_timeout=blocking_timeout)


# Global instance
fast_redis = FastRedisClient()
