"""
Redis cache store for the Storefront service.
"""

from typing import List, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from shared.errors import ServiceError


class RedisCacheStore:
    """Thin async wrapper over the shared Redis instance.

    Store errors propagate; the read-through helper and the invalidator
    decide how a failure is handled.
    """

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("storefront.cache.redis")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Connect to Redis."""
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

        try:
            await self.redis.ping()
            self.logger.info("Redis cache started")
        except Exception as e:
            # The service still runs without Redis; reads fall back to the store.
            self.logger.error("Redis unavailable at startup", error=str(e))

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.logger.info("Redis cache stopped")

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise ServiceError("Redis cache not started")
        return self.redis

    async def get(self, key: str) -> Optional[str]:
        return await self._client().get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self._client().set(key, value, ex=ttl_seconds)

    async def setex(self, key: str, ttl_seconds: int, value: str) -> None:
        await self._client().setex(key, ttl_seconds, value)

    async def delete(self, *keys: str) -> int:
        """Delete keys; absent keys are ignored."""
        if not keys:
            return 0
        return await self._client().delete(*keys)

    async def keys(self, pattern: str) -> List[str]:
        return await self._client().keys(pattern)

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            return bool(await self._client().ping())
        except Exception:
            return False
