"""
Voyage AI Embedding Provider.

Embedding-only provider; the recommended pairing for Anthropic chat models.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.entities import ErrorType
from ..domain.ports import IEmbeddingProvider
from .base import LLMProviderError

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring voyageai if not used
try:
    import voyageai

    VOYAGEAI_AVAILABLE = True
except ImportError:
    VOYAGEAI_AVAILABLE = False
    voyageai = None


def _to_provider_error(e: Exception, what: str) -> LLMProviderError:
    """Voyage AI has few typed errors; classify by message."""
    error_str = str(e).lower()
    if "rate limit" in error_str or "429" in error_str:
        return LLMProviderError(f"Rate limited: {e}", ErrorType.RATE_LIMIT, e)
    if "timeout" in error_str or "timed out" in error_str:
        return LLMProviderError(f"Request timed out: {e}", ErrorType.TIMEOUT, e)
    if "api key" in error_str or "401" in error_str:
        return LLMProviderError(f"{what} failed: {e}", ErrorType.FATAL, e)
    return LLMProviderError(f"{what} failed: {e}", ErrorType.RECOVERABLE, e)


class VoyageAIProvider(IEmbeddingProvider):
    """Voyage AI embedding provider implementation.

    Usage:
        provider = VoyageAIProvider(api_key="pa-...", model="voyage-3")
        embedding, model, dim = await provider.embed("Hello world")
    """

    DEFAULT_EMBEDDING_MODEL = "voyage-3"

    # Embedding dimensions by model
    EMBEDDING_DIMENSIONS = {
        "voyage-3": 1024,
        "voyage-3-lite": 512,
        "voyage-3-large": 1024,
        "voyage-2": 1024,
        "voyage-large-2": 1536,
        "voyage-code-2": 1536,
    }

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: float = 30.0):
        """Initialize the Voyage AI provider.

        Args:
            api_key: Voyage AI API key
            model: Embedding model name
            timeout: Request timeout in seconds

        Raises:
            ImportError: If voyageai package is not installed
        """
        if not VOYAGEAI_AVAILABLE:
            raise ImportError(
                "voyageai package is required for VoyageAIProvider. "
                "Install with: pip install voyageai"
            )

        self.embedding_model = model or self.DEFAULT_EMBEDDING_MODEL
        self.client = voyageai.AsyncClient(api_key=api_key, timeout=timeout, max_retries=0)

    @property
    def dimension(self) -> int:
        return self.EMBEDDING_DIMENSIONS.get(self.embedding_model, 1024)

    @property
    def model_name(self) -> str:
        return self.embedding_model

    async def embed(self, text: str) -> tuple[list[float], str, int]:
        """Generate an embedding for a query text.

        Returns:
            Tuple of (embedding_vector, model_name, dimension)

        Raises:
            LLMProviderError: On API errors
        """
        try:
            response = await self.client.embed(
                [text],
                model=self.embedding_model,
                input_type="query",
            )
        except Exception as e:
            logger.error(f"Voyage AI embedding error: {e}")
            raise _to_provider_error(e, "Embedding")

        embedding = response.embeddings[0]
        return embedding, self.embedding_model, len(embedding)

    async def embed_batch(self, texts: list[str]) -> list[tuple[list[float], str, int]]:
        """Embed document chunks in one request."""
        if not texts:
            return []

        try:
            response = await self.client.embed(
                texts,
                model=self.embedding_model,
                input_type="document",
            )
        except Exception as e:
            logger.error(f"Voyage AI batch embedding error: {e}")
            raise _to_provider_error(e, "Batch embedding")

        return [
            (embedding, self.embedding_model, len(embedding))
            for embedding in response.embeddings
        ]
