"""
In-process vector store.

Exact cosine search over every stored chunk. Used for local runs
(pgvector.url = "memory://") and tests.
"""

from __future__ import annotations

import asyncio
import logging
import math

from ..domain.entities import DocumentChunk, RetrievedChunk
from ..domain.ports import IVectorStore
from ..exceptions import VectorStoreError

logger = logging.getLogger(__name__)

MIN_SIMILARITY = 0.01


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 for zero vectors)."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(IVectorStore):
    """Vector store backed by a Python list.

    Usage:
        store = InMemoryVectorStore(dimension=1024)
        await store.add(chunk)
        results = await store.similarity_search(query_vector, k=5)
    """

    def __init__(self, dimension: int = 1024, min_similarity: float = MIN_SIMILARITY):
        self.dimension = dimension
        self.min_similarity = min_similarity
        self._chunks: list[DocumentChunk] = []
        self._lock = asyncio.Lock()

    def _check_dimension(self, vector: list[float], what: str) -> None:
        if len(vector) != self.dimension:
            raise VectorStoreError(
                f"{what} dimension mismatch: expected {self.dimension}, got {len(vector)}",
                details={"expected": self.dimension, "actual": len(vector)},
            )

    async def add(self, chunk: DocumentChunk) -> None:
        self._check_dimension(chunk.embedding, "Embedding")
        async with self._lock:
            self._chunks.append(chunk)

    async def similarity_search(
        self, vector: list[float], k: int
    ) -> list[RetrievedChunk]:
        self._check_dimension(vector, "Query embedding")
        if k <= 0:
            return []

        async with self._lock:
            chunks = list(self._chunks)

        results = []
        for chunk in chunks:
            score = cosine_similarity(vector, chunk.embedding)
            if score > self.min_similarity:
                results.append(
                    RetrievedChunk(
                        source_file=chunk.file_name,
                        chunk_index=chunk.chunk_id,
                        content=chunk.content,
                        score=score,
                    )
                )

        results.sort(key=RetrievedChunk.sort_key)
        logger.debug(f"In-memory search found {len(results)} candidates, returning {min(k, len(results))}")
        return results[:k]

    async def count(self) -> int:
        return len(self._chunks)
