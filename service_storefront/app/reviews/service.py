"""
Review moderation and social posts.
"""

from typing import Any, Dict, List

from shared.errors import NotFoundError
from shared.logging import get_logger
from ..caching import CacheInvalidator, EntityGroup, ReadThroughCache
from ..caching import keys
from ..persistence import DocumentStore, REVIEWS, SOCIAL_POSTS, ASCENDING, DESCENDING
from .models import ReviewCreate, ReviewFilter, ReviewSort, SocialPostIn


_REVIEW_ORDER = {
    ReviewSort.LATEST: [("created_at", DESCENDING)],
    ReviewSort.HIGHEST: [("rating", DESCENDING), ("created_at", DESCENDING)],
    ReviewSort.LOWEST: [("rating", ASCENDING), ("created_at", DESCENDING)],
}


class ReviewService:
    def __init__(self, store: DocumentStore, cache: ReadThroughCache, invalidator: CacheInvalidator):
        self.store = store
        self.cache = cache
        self.invalidator = invalidator
        self.logger = get_logger("storefront.reviews")

    async def list_approved(self, sort_by: ReviewSort = ReviewSort.LATEST) -> List[Dict[str, Any]]:
        async def produce():
            return await self.store.find(REVIEWS, {"is_approved": True}, sort=_REVIEW_ORDER[sort_by])

        return await self.cache.cached(keys.reviews(sort_by.value), produce, keys.REVIEWS_TTL)

    async def submit(self, request: ReviewCreate) -> Dict[str, Any]:
        """Store a review pending moderation."""
        review = await self.store.insert(REVIEWS, {
            **request.model_dump(),
            "is_approved": False,
            "verified_purchase": False,
        })
        await self.invalidator.invalidate(EntityGroup.REVIEWS)
        self.logger.info("Review submitted", review_id=review["_id"], rating=review["rating"])
        return review

    async def list_all(self, review_filter: ReviewFilter = ReviewFilter.ALL) -> List[Dict[str, Any]]:
        filters = {}
        if review_filter == ReviewFilter.PENDING:
            filters["is_approved"] = False
        elif review_filter == ReviewFilter.APPROVED:
            filters["is_approved"] = True
        return await self.store.find(REVIEWS, filters, sort=[("created_at", DESCENDING)])

    async def set_approved(self, review_id: str, approved: bool) -> Dict[str, Any]:
        review = await self.store.update(REVIEWS, review_id, {"is_approved": approved})
        if not review:
            raise NotFoundError("Review not found")
        await self.invalidator.invalidate(EntityGroup.REVIEWS)
        self.logger.info("Review moderated", review_id=review_id, approved=approved)
        return review

    async def delete(self, review_id: str):
        if not await self.store.delete(REVIEWS, review_id):
            raise NotFoundError("Review not found")
        await self.invalidator.invalidate(EntityGroup.REVIEWS)
        self.logger.info("Review deleted", review_id=review_id)


class SocialPostService:
    def __init__(self, store: DocumentStore, cache: ReadThroughCache, invalidator: CacheInvalidator):
        self.store = store
        self.cache = cache
        self.invalidator = invalidator
        self.logger = get_logger("storefront.social_posts")

    async def list_active(self) -> List[Dict[str, Any]]:
        async def produce():
            return await self.store.find(SOCIAL_POSTS, {"is_active": True}, sort=[("display_order", ASCENDING)])

        return await self.cache.cached(keys.SOCIAL_POSTS_ACTIVE, produce, keys.SOCIAL_POSTS_TTL)

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self.store.find(SOCIAL_POSTS, sort=[("display_order", ASCENDING)])

    async def create(self, post: SocialPostIn) -> Dict[str, Any]:
        created = await self.store.insert(SOCIAL_POSTS, post.model_dump())
        await self.invalidator.invalidate(EntityGroup.SOCIAL_POSTS)
        self.logger.info("Social post created", post_id=created["_id"])
        return created

    async def update(self, post_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        changes = {k: v for k, v in changes.items() if k not in ("_id", "created_at", "updated_at")}
        updated = await self.store.update(SOCIAL_POSTS, post_id, changes)
        if not updated:
            raise NotFoundError("Social post not found")
        await self.invalidator.invalidate(EntityGroup.SOCIAL_POSTS)
        self.logger.info("Social post updated", post_id=post_id)
        return updated

    async def delete(self, post_id: str):
        if not await self.store.delete(SOCIAL_POSTS, post_id):
            raise NotFoundError("Social post not found")
        await self.invalidator.invalidate(EntityGroup.SOCIAL_POSTS)
        self.logger.info("Social post deleted", post_id=post_id)
