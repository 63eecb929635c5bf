"""
Read-through (cache-aside) helper.
"""

import json
from typing import Any, Awaitable, Callable, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .redis_store import RedisCacheStore


DEFAULT_TTL_SECONDS = 300

Producer = Callable[[], Awaitable[Any]]


class ReadThroughCache:
    """Serve values from the cache store, computing and storing them on miss.

    Cache-store failures never reach the caller: a failed read falls back to
    the producer without attempting a write, and a failed write is logged
    and ignored. Producer failures propagate unchanged.

    A producer result of ``None`` is cached like any other value, so a
    "not found" answer is served from the cache until its TTL expires.
    """

    def __init__(self, store: "RedisCacheStore", metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("storefront.cache.read_through")

    async def cached(self, key: str, producer: Producer, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> Any:
        if not key:
            raise ValueError("cache key must be a non-empty string")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        namespace = self._namespace(key)

        try:
            raw = await self.store.get(key)
        except Exception as exc:
            self.logger.warning("Cache read failed, falling back to producer", key=key, error=str(exc))
            self._count("cache_fallbacks_total", namespace=namespace, operation="get")
            return await producer()

        if raw is not None:
            try:
                value = json.loads(raw)
            except (TypeError, ValueError) as exc:
                self.logger.warning("Discarding undecodable cache entry", key=key, error=str(exc))
            else:
                self.logger.debug("Cache hit", key=key)
                self._count("cache_hits_total", namespace=namespace)
                return value

        self.logger.debug("Cache miss", key=key)
        self._count("cache_misses_total", namespace=namespace)
        value = await producer()

        try:
            await self.store.setex(key, ttl_seconds, json.dumps(value, default=str))
            self.logger.debug("Cache set", key=key, ttl=ttl_seconds)
        except Exception as exc:
            self.logger.warning("Cache write failed", key=key, error=str(exc))
            self._count("cache_fallbacks_total", namespace=namespace, operation="set")

        return value

    @staticmethod
    def _namespace(key: str) -> str:
        """First two key segments, e.g. ``admin:products``; bounds label cardinality."""
        return ":".join(key.split(":")[:2])

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
