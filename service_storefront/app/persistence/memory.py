"""
In-memory document store for local runs and tests.
"""

import copy
from typing import Any, Dict, List, Optional

from shared.logging import get_logger
from .base import (
    DocumentStore, Document, Filters, Sort, NOT_NULL, DESCENDING, utc_now,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store; documents are deep-copied on the way in and out."""

    def __init__(self):
        self.logger = get_logger("storefront.persistence.memory")
        self._collections: Dict[str, Dict[str, Document]] = {}

    def _collection(self, name: str) -> Dict[str, Document]:
        return self._collections.setdefault(name, {})

    @staticmethod
    def _matches(document: Document, filters: Optional[Filters]) -> bool:
        for field, expected in (filters or {}).items():
            actual = document.get(field)
            if expected is NOT_NULL:
                if actual is None:
                    return False
            elif actual != expected:
                return False
        return True

    @staticmethod
    def _sort_key(field: str):
        def key(document: Document) -> Any:
            value = document.get(field)
            return (value is not None, value)
        return key

    async def insert(self, collection: str, document: Document) -> Document:
        prepared = self._prepare_insert(document)
        self._collection(collection)[prepared["_id"]] = copy.deepcopy(prepared)
        return copy.deepcopy(prepared)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    async def find(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        matches = [doc for doc in self._collection(collection).values() if self._matches(doc, filters)]

        # Apply sort keys from least to most significant; sorted() is stable.
        for field, direction in reversed(list(sort or [])):
            matches = sorted(matches, key=self._sort_key(field), reverse=direction == DESCENDING)

        end = skip + limit if limit is not None else None
        return [copy.deepcopy(doc) for doc in matches[skip:end]]

    async def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        return sum(1 for doc in self._collection(collection).values() if self._matches(doc, filters))

    async def update(self, collection: str, doc_id: str, changes: Document) -> Optional[Document]:
        documents = self._collection(collection)
        if doc_id not in documents:
            return None
        updated = {**documents[doc_id], **copy.deepcopy(changes), "_id": doc_id, "updated_at": utc_now()}
        documents[doc_id] = updated
        return copy.deepcopy(updated)

    async def delete(self, collection: str, doc_id: str) -> Optional[Document]:
        return self._collection(collection).pop(doc_id, None)

    async def delete_many(self, collection: str, filters: Filters) -> int:
        documents = self._collection(collection)
        doomed = [doc_id for doc_id, doc in documents.items() if self._matches(doc, filters)]
        for doc_id in doomed:
            del documents[doc_id]
        return len(doomed)
