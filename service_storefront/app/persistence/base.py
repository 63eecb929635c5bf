"""
Document store interface for the Storefront service.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

Document = Dict[str, Any]
Filters = Dict[str, Any]
Sort = Sequence[Tuple[str, int]]

ASCENDING = 1
DESCENDING = -1


class _NotNull:
    """Filter value matching documents where the field is present and not null."""

    def __repr__(self) -> str:
        return "NOT_NULL"


NOT_NULL = _NotNull()


def utc_now() -> str:
    """Return an ISO8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


class DocumentStore(ABC):
    """Collection-oriented persistence.

    Documents are JSON-compatible dicts identified by ``_id``. Stores stamp
    ``created_at`` on insert and ``updated_at`` on every write. Filters are
    equality matches per field; ``NOT_NULL`` matches any non-null value.
    """

    async def start(self) -> None:
        """Open connections. No-op by default."""

    async def stop(self) -> None:
        """Release connections. No-op by default."""

    async def health_check(self) -> bool:
        return True

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> Document:
        """Insert a document, assigning ``_id`` when absent."""

    async def insert_many(self, collection: str, documents: List[Document]) -> List[Document]:
        return [await self.insert(collection, document) for document in documents]

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Fetch a document by id."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """Return matching documents."""

    async def find_one(self, collection: str, filters: Filters) -> Optional[Document]:
        matches = await self.find(collection, filters, limit=1)
        return matches[0] if matches else None

    @abstractmethod
    async def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        """Count matching documents."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Document) -> Optional[Document]:
        """Merge ``changes`` into a document; returns the new version or None if absent."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> Optional[Document]:
        """Delete a document; returns the removed version or None if absent."""

    @abstractmethod
    async def delete_many(self, collection: str, filters: Filters) -> int:
        """Delete matching documents; returns how many were removed."""

    @staticmethod
    def _prepare_insert(document: Document) -> Document:
        now = utc_now()
        prepared = dict(document)
        prepared.setdefault("_id", new_id())
        prepared.setdefault("created_at", now)
        prepared["updated_at"] = now
        return prepared
