"""
PostgreSQL + pgvector vector store.

Chunks live in a `documents` table with a VECTOR(dimension) column. Vectors
are sent as pgvector text literals and cast with `::vector`, so no custom
asyncpg codec is needed.
"""

from __future__ import annotations

import logging
from typing import Any

from ..domain.entities import DocumentChunk, RetrievedChunk
from ..domain.ports import IVectorStore
from ..exceptions import ConfigError, VectorStoreError

logger = logging.getLogger(__name__)

MIN_SIMILARITY = 0.01


def to_pgvector(vector: list[float]) -> str:
    """Format a vector as a pgvector literal: '[0.1,0.2,...]'."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


class PgVectorStore(IVectorStore):
    """pgvector-backed store using an asyncpg pool.

    Usage:
        store = await PgVectorStore.create(database_url, dimension=1024)
        await store.ensure_schema()
        results = await store.similarity_search(query_vector, k=5)
        await store.close()
    """

    def __init__(self, pool: Any, dimension: int = 1024):
        """Initialize with an existing pool.

        Args:
            pool: asyncpg.Pool (anything with an async acquire() context)
            dimension: Embedding size of the VECTOR column
        """
        self.pool = pool
        self.dimension = dimension

    @classmethod
    async def create(
        cls,
        database_url: str,
        dimension: int = 1024,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 60.0,
    ) -> "PgVectorStore":
        """Create a pool and wrap it.

        Raises:
            ConfigError: If asyncpg is missing or the database is unreachable
        """
        try:
            import asyncpg
        except ImportError:
            raise ConfigError("asyncpg is not installed. Run: pip install asyncpg")

        try:
            pool = await asyncpg.create_pool(
                database_url,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
            )
        except Exception as e:
            raise ConfigError(f"Failed to connect to vector database: {e}", cause=e)

        logger.info(f"Vector store pool created (min={min_size}, max={max_size})")
        return cls(pool, dimension=dimension)

    async def ensure_schema(self) -> None:
        """Create the extension, table and indexes if they do not exist."""
        async with self.pool.acquire() as conn:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS documents (
                    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                    file_name TEXT NOT NULL,
                    chunk_id INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    embedding VECTOR({int(self.dimension)}),
                    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
                )
                """
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_file_name ON documents(file_name)"
            )
            await conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_documents_embedding
                ON documents USING ivfflat (embedding vector_cosine_ops)
                WITH (lists = 100)
                """
            )
        logger.info("Vector store schema ready")

    def _check_dimension(self, vector: list[float], what: str) -> None:
        if len(vector) != self.dimension:
            raise VectorStoreError(
                f"{what} dimension mismatch: expected {self.dimension}, got {len(vector)}"
            )

    async def add(self, chunk: DocumentChunk) -> None:
        self._check_dimension(chunk.embedding, "Embedding")
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO documents (id, file_name, chunk_id, content, embedding, created_at)
                    VALUES ($1, $2, $3, $4, $5::vector, $6)
                    """,
                    chunk.id,
                    chunk.file_name,
                    chunk.chunk_id,
                    chunk.content,
                    to_pgvector(chunk.embedding),
                    chunk.created_at,
                )
        except Exception as e:
            logger.error(f"Failed to insert chunk {chunk.file_name}#{chunk.chunk_id}: {e}")
            raise VectorStoreError(f"Failed to insert document: {e}", cause=e)

    async def similarity_search(
        self, vector: list[float], k: int
    ) -> list[RetrievedChunk]:
        self._check_dimension(vector, "Query embedding")
        if k <= 0:
            return []

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT file_name, chunk_id, content,
                           1 - (embedding <=> $1::vector) AS similarity
                    FROM documents
                    WHERE 1 - (embedding <=> $1::vector) > $3
                    ORDER BY embedding <=> $1::vector
                    LIMIT $2
                    """,
                    to_pgvector(vector),
                    k,
                    MIN_SIMILARITY,
                )
        except Exception as e:
            logger.error(f"Similarity search failed: {e}")
            raise VectorStoreError(f"Failed to execute similarity search: {e}", cause=e)

        results = [
            RetrievedChunk(
                source_file=row["file_name"],
                chunk_index=row["chunk_id"],
                content=row["content"],
                score=float(row["similarity"]),
            )
            for row in rows
        ]
        logger.info(f"Found {len(results)} results")
        return results

    async def count(self) -> int:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetchval("SELECT COUNT(*) FROM documents")
        except Exception as e:
            raise VectorStoreError(f"Failed to get document count: {e}", cause=e)

    async def close(self) -> None:
        await self.pool.close()
        logger.info("Vector store pool closed")
