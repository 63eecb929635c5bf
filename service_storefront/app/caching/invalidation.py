"""
Cache invalidation policy.

Two explicit tables drive invalidation:

- ``TAG_KEYS`` maps a cache tag to the exact keys, wildcard patterns and
  per-entity key templates it owns.
- ``GROUP_TAGS`` maps a mutated entity group to every tag it must clear,
  including cross-group cascades (a category change clears admin and public
  product views because both embed category data).

Invalidation runs after the entity write has committed. It is idempotent and
never raises: a failure leaves entries to expire by TTL and is logged and
counted instead.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Set, Tuple, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from .redis_store import RedisCacheStore


class CacheTag(str, Enum):
    """Logical cache namespaces."""
    ADMIN_PRODUCTS = "admin:products"
    ADMIN_PRODUCT_DETAILS = "admin:product"
    CONTENT_PRODUCTS = "content:products"
    ADMIN_CATEGORIES = "admin:categories"
    CONTENT_CATEGORIES = "content:categories"
    ADMIN_ORDERS = "admin:orders"
    REVIEWS = "reviews"
    SOCIAL_POSTS = "social-posts:active"


class EntityGroup(str, Enum):
    """Entity groups whose mutations trigger invalidation."""
    PRODUCTS = "products"
    CATEGORIES = "categories"
    ORDERS = "orders"
    REVIEWS = "reviews"
    SOCIAL_POSTS = "social_posts"


@dataclass(frozen=True)
class TagKeys:
    """Keys owned by a cache tag."""
    exact: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()
    per_id: Tuple[str, ...] = ()


TAG_KEYS: Dict[CacheTag, TagKeys] = {
    CacheTag.ADMIN_PRODUCTS: TagKeys(
        patterns=("admin:products*",),
        per_id=("admin:product:{id}",),
    ),
    CacheTag.ADMIN_PRODUCT_DETAILS: TagKeys(patterns=("admin:product:*",)),
    CacheTag.CONTENT_PRODUCTS: TagKeys(
        patterns=("content:products*", "content:product:*"),
    ),
    CacheTag.ADMIN_CATEGORIES: TagKeys(exact=("admin:categories",)),
    CacheTag.CONTENT_CATEGORIES: TagKeys(exact=("content:categories",)),
    CacheTag.ADMIN_ORDERS: TagKeys(
        exact=("admin:orders",),
        per_id=("admin:order:{id}",),
    ),
    CacheTag.REVIEWS: TagKeys(patterns=("reviews*",)),
    CacheTag.SOCIAL_POSTS: TagKeys(exact=("social-posts:active",)),
}


GROUP_TAGS: Dict[EntityGroup, Tuple[CacheTag, ...]] = {
    EntityGroup.PRODUCTS: (CacheTag.ADMIN_PRODUCTS, CacheTag.CONTENT_PRODUCTS),
    EntityGroup.CATEGORIES: (
        CacheTag.ADMIN_CATEGORIES,
        CacheTag.CONTENT_CATEGORIES,
        CacheTag.ADMIN_PRODUCTS,
        CacheTag.ADMIN_PRODUCT_DETAILS,
        CacheTag.CONTENT_PRODUCTS,
    ),
    EntityGroup.ORDERS: (CacheTag.ADMIN_ORDERS,),
    EntityGroup.REVIEWS: (CacheTag.REVIEWS,),
    EntityGroup.SOCIAL_POSTS: (CacheTag.SOCIAL_POSTS,),
}


class CacheInvalidator:
    """Apply the invalidation tables against the cache store."""

    def __init__(self, store: "RedisCacheStore", metrics: Optional["MetricsCollector"] = None):
        self.store = store
        self.metrics = metrics
        self.logger = get_logger("storefront.cache.invalidation")

    async def invalidate(self, group: EntityGroup, entity_id: Optional[str] = None) -> int:
        """Delete every cache key owned by ``group``; returns the number deleted."""
        deleted = 0
        for tag in GROUP_TAGS[group]:
            try:
                deleted += await self._invalidate_tag(tag, entity_id)
            except Exception as exc:
                self.logger.error(
                    "Cache invalidation failed",
                    group=group.value,
                    tag=tag.value,
                    entity_id=entity_id,
                    error=str(exc),
                )
                if self.metrics:
                    self.metrics.increment_counter("cache_invalidation_errors_total", group=group.value)

        if self.metrics and deleted:
            self.metrics.increment_counter("cache_invalidated_keys_total", amount=deleted, group=group.value)

        self.logger.info("Cache invalidated", group=group.value, entity_id=entity_id, count=deleted)
        return deleted

    async def _invalidate_tag(self, tag: CacheTag, entity_id: Optional[str]) -> int:
        owned = TAG_KEYS[tag]
        keys: Set[str] = set(owned.exact)
        if entity_id is not None:
            keys.update(template.format(id=entity_id) for template in owned.per_id)

        for pattern in owned.patterns:
            keys.update(await self.store.keys(pattern))

        if not keys:
            return 0
        return await self.store.delete(*sorted(keys))
