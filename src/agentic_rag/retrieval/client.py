"""
Retrieval Client.

Embeds a query and asks the vector store for the k most similar chunks.
Embedding is retried with exponential backoff; a failure that survives the
retries surfaces as a RetrievalError subclass for the caller to degrade on.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.entities import RetrievedChunk
from ..domain.ports import IEmbeddingProvider, IVectorStore
from ..exceptions import EmbeddingError, RetrievalError, VectorStoreError
from ..resilience import retry_async

logger = logging.getLogger(__name__)


class RetrievalClient:
    """Query-time retrieval over an embedding provider and a vector store.

    Usage:
        client = RetrievalClient(embedder, store, k=5)
        chunks = await client.retrieve("What is the remote work policy?")

    Attributes:
        k: Default number of chunks to return
        max_attempts: Embedding attempts before giving up
    """

    def __init__(
        self,
        embedder: IEmbeddingProvider,
        store: IVectorStore,
        k: int = 5,
        max_attempts: int = 3,
        initial_delay: float = 0.5,
        backoff_factor: float = 2.0,
        max_delay: float = 8.0,
    ):
        self.embedder = embedder
        self.store = store
        self.k = k
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay

    async def _embed(self, query: str) -> list[float]:
        try:
            vector, _, _ = await retry_async(
                self.embedder.embed,
                query,
                max_attempts=self.max_attempts,
                initial_delay=self.initial_delay,
                backoff_factor=self.backoff_factor,
                max_delay=self.max_delay,
            )
        except Exception as e:
            raise EmbeddingError(f"Failed to embed query: {e}", cause=e)
        return vector

    async def retrieve(self, query: str, k: Optional[int] = None) -> list[RetrievedChunk]:
        """Return up to k chunks ranked by descending similarity.

        Ties are broken by (source_file, chunk_index) ascending.

        Args:
            query: Query text (normally the latest user message)
            k: Number of chunks (defaults to self.k)

        Returns:
            Ranked chunks, possibly empty

        Raises:
            EmbeddingError: If the query cannot be embedded after retries
            VectorStoreError: If the similarity search fails
        """
        k = self.k if k is None else k
        if k <= 0 or not query.strip():
            return []

        vector = await self._embed(query)

        try:
            chunks = await self.store.similarity_search(vector, k)
        except RetrievalError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Similarity search failed: {e}", cause=e)

        ranked = sorted(chunks, key=RetrievedChunk.sort_key)[:k]
        logger.info(f"Retrieved {len(ranked)} chunks for query ({len(query)} chars)")
        return ranked
