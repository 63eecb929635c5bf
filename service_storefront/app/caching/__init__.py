"""
Storefront caching package.

Read-through caching over Redis with explicit, table-driven invalidation.
Cached reads are eventually consistent within their TTL: invalidation is not
transactional with the entity write, and a read racing a write may
repopulate a stale entry until it expires.
"""

from .invalidation import CacheInvalidator, CacheTag, EntityGroup
from .read_through import ReadThroughCache, DEFAULT_TTL_SECONDS
from .redis_store import RedisCacheStore

__all__ = [
    "CacheInvalidator",
    "CacheTag",
    "EntityGroup",
    "ReadThroughCache",
    "DEFAULT_TTL_SECONDS",
    "RedisCacheStore",
]
