"""
Persistence package for the Storefront service.

Provides a collection/document store interface with a PostgreSQL JSONB
implementation and an in-memory implementation for local runs and tests.
"""

from .base import DocumentStore, NOT_NULL, ASCENDING, DESCENDING
from .memory import InMemoryDocumentStore

# Collection names
PRODUCTS = "products"
CATEGORIES = "categories"
ORDERS = "orders"
ORDER_ITEMS = "order_items"
REVIEWS = "reviews"
SOCIAL_POSTS = "social_posts"


def create_document_store(dsn: str) -> DocumentStore:
    """Build the document store selected by ``dsn`` (``memory://`` for in-memory)."""
    if dsn.startswith("memory://"):
        return InMemoryDocumentStore()

    from .postgres import PostgresDocumentStore
    return PostgresDocumentStore(dsn)


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "NOT_NULL",
    "ASCENDING",
    "DESCENDING",
    "create_document_store",
    "PRODUCTS",
    "CATEGORIES",
    "ORDERS",
    "ORDER_ITEMS",
    "REVIEWS",
    "SOCIAL_POSTS",
]
