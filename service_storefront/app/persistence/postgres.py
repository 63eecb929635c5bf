"""
PostgreSQL document store for the Storefront service.

Documents live in a single JSONB table keyed by (collection, id).
"""

import json
from typing import Any, List, Optional, Tuple

import asyncpg

from shared.logging import get_logger
from shared.errors import StorefrontException
from .base import DocumentStore, Document, Filters, Sort, NOT_NULL, DESCENDING, utc_now


class PostgresDocumentStore(DocumentStore):
    """asyncpg-backed document store."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("storefront.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )
            await self._create_tables()
            self.logger.info("PostgreSQL document store started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL document store", error=str(e))
            raise StorefrontException("POSTGRES_START_FAILED", str(e), status_code=500)

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.logger.info("PostgreSQL document store stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection VARCHAR(100) NOT NULL,
                    id VARCHAR(64) NOT NULL,
                    body JSONB NOT NULL,
                    PRIMARY KEY (collection, id)
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_body ON documents USING GIN (body);
            """)

    @staticmethod
    def _where(collection: str, filters: Optional[Filters]) -> Tuple[str, List[Any]]:
        """Build a WHERE clause; equality filters use JSONB containment."""
        clauses = ["collection = $1"]
        params: List[Any] = [collection]
        equality = {}

        for field, value in (filters or {}).items():
            if value is NOT_NULL:
                params.append(field)
                clauses.append(f"COALESCE(jsonb_typeof(body -> ${len(params)}), 'null') <> 'null'")
            else:
                equality[field] = value

        if equality:
            params.append(json.dumps(equality))
            clauses.append(f"body @> ${len(params)}::jsonb")

        return " AND ".join(clauses), params

    @staticmethod
    def _decode(row) -> Document:
        return json.loads(row["body"])

    async def insert(self, collection: str, document: Document) -> Document:
        prepared = self._prepare_insert(document)
        async with self.pool.acquire() as conn:
            await conn.execute(
                "INSERT INTO documents (collection, id, body) VALUES ($1, $2, $3::jsonb)",
                collection, prepared["_id"], json.dumps(prepared)
            )
        return prepared

    async def insert_many(self, collection: str, documents: List[Document]) -> List[Document]:
        prepared = [self._prepare_insert(document) for document in documents]
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    "INSERT INTO documents (collection, id, body) VALUES ($1, $2, $3::jsonb)",
                    [(collection, doc["_id"], json.dumps(doc)) for doc in prepared]
                )
        return prepared

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT body FROM documents WHERE collection = $1 AND id = $2",
                collection, doc_id
            )
        return self._decode(row) if row else None

    async def find(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Document]:
        where, params = self._where(collection, filters)
        query = f"SELECT body FROM documents WHERE {where}"

        order_terms = []
        for field, direction in sort or []:
            params.append(field)
            order_terms.append(f"body -> ${len(params)} {'DESC' if direction == DESCENDING else 'ASC'}")
        if order_terms:
            query += " ORDER BY " + ", ".join(order_terms)

        if limit is not None:
            params.append(limit)
            query += f" LIMIT ${len(params)}"
        if skip:
            params.append(skip)
            query += f" OFFSET ${len(params)}"

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [self._decode(row) for row in rows]

    async def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        where, params = self._where(collection, filters)
        async with self.pool.acquire() as conn:
            return await conn.fetchval(f"SELECT COUNT(*) FROM documents WHERE {where}", *params)

    async def update(self, collection: str, doc_id: str, changes: Document) -> Optional[Document]:
        patch = {**changes, "_id": doc_id, "updated_at": utc_now()}
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE documents SET body = body || $3::jsonb
                WHERE collection = $1 AND id = $2
                RETURNING body
                """,
                collection, doc_id, json.dumps(patch)
            )
        return self._decode(row) if row else None

    async def delete(self, collection: str, doc_id: str) -> Optional[Document]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "DELETE FROM documents WHERE collection = $1 AND id = $2 RETURNING body",
                collection, doc_id
            )
        return self._decode(row) if row else None

    async def delete_many(self, collection: str, filters: Filters) -> int:
        where, params = self._where(collection, filters)
        async with self.pool.acquire() as conn:
            status = await conn.execute(f"DELETE FROM documents WHERE {where}", *params)
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(status.split()[-1])

    async def health_check(self) -> bool:
        """Check PostgreSQL health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False
