"""
Cache key builders.

Keys are ":"-delimited: <namespace>:<entity>:<parameter fingerprint>. Every
builder here must be covered by a tag in ``invalidation.TAG_KEYS``.
"""

from typing import Optional

ADMIN_CATEGORIES = "admin:categories"
CONTENT_CATEGORIES = "content:categories"
ADMIN_ORDERS = "admin:orders"
SOCIAL_POSTS_ACTIVE = "social-posts:active"

# TTLs in seconds
CATALOG_TTL = 600
ORDERS_TTL = 300
REVIEWS_TTL = 600
SOCIAL_POSTS_TTL = 1800


def admin_products_page(page: int, limit: int) -> str:
    return f"admin:products:page:{page}:limit:{limit}"


def admin_product(product_id: str) -> str:
    return f"admin:product:{product_id}"


def content_products(
    featured: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    return (
        f"content:products:featured:{featured or 'all'}"
        f":category:{category or 'all'}"
        f":limit:{limit or 'all'}"
    )


def content_product(slug: str) -> str:
    return f"content:product:{slug}"


def admin_order(order_id: str) -> str:
    return f"admin:order:{order_id}"


def reviews(sort_by: str) -> str:
    return f"reviews:{sort_by}"
