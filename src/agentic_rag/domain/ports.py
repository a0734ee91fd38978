"""
Port interfaces (abstract base classes) for the agentic RAG service.

These define the narrow capability signatures the orchestrator depends on.
Following the Ports & Adapters (Hexagonal) architecture pattern.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, AsyncIterator, Optional

if TYPE_CHECKING:
    from .entities import DocumentChunk, Message, RetrievedChunk, SessionSnapshot


# ============================================
# Chat Provider Interface
# ============================================


class IChatProvider(ABC):
    """Interface for streaming chat models (Claude, GPT, Ollama, etc.).

    Implementations handle the specifics of each API while exposing a plain
    stream of text deltas. Failures are raised as LLMProviderError so the
    generation client can decide between fallback and failure.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier (e.g., 'claude-sonnet-4-5', 'gpt-4o')."""
        pass

    @abstractmethod
    def chat_stream(
        self,
        messages: list[Message],
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream a completion for the conversation.

        Args:
            messages: Ordered prompt messages
            system_prompt: System instruction
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Yields:
            Text deltas in generation order

        Raises:
            LLMProviderError: On any provider failure
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None


# ============================================
# Embedding Provider Interface
# ============================================


class IEmbeddingProvider(ABC):
    """Interface for embedding generation."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding vector dimension."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the embedding model identifier."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> tuple[list[float], str, int]:
        """Generate an embedding for the given text.

        Args:
            text: Text to embed

        Returns:
            Tuple of (embedding_vector, model_name, dimension)

        Raises:
            LLMProviderError: On provider failure
        """
        pass

    async def embed_batch(self, texts: list[str]) -> list[tuple[list[float], str, int]]:
        """Generate embeddings for multiple texts.

        Default implementation embeds one text at a time.
        """
        return [await self.embed(text) for text in texts]

    async def close(self) -> None:
        """Release network resources."""
        return None


# ============================================
# Vector Store Interface
# ============================================


class IVectorStore(ABC):
    """Interface for the vector index.

    Treated as a capability: given a query vector and k, return the top-k
    rows by cosine similarity.
    """

    @abstractmethod
    async def add(self, chunk: DocumentChunk) -> None:
        """Insert a chunk and its embedding."""
        pass

    @abstractmethod
    async def similarity_search(
        self, vector: list[float], k: int
    ) -> list[RetrievedChunk]:
        """Return up to k chunks ranked by descending similarity.

        Raises:
            VectorStoreError: If the index cannot be queried
        """
        pass

    async def count(self) -> int:
        """Return the number of stored chunks."""
        return 0

    async def close(self) -> None:
        """Release connections."""
        return None


# ============================================
# Session Store Interface
# ============================================


class ISessionStore(ABC):
    """Interface for conversational history storage.

    The store is the only component allowed to mutate history. Appends for
    one session are mutually exclusive; different sessions never block each
    other.
    """

    @abstractmethod
    async def get_or_create(self, session_id: str) -> SessionSnapshot:
        """Return the session's history, creating an empty session if needed."""
        pass

    @abstractmethod
    async def append(
        self,
        session_id: str,
        messages: list[Message],
        create_if_missing: bool = True,
    ) -> None:
        """Append the turns of one exchange as a single unit.

        Raises:
            SessionNotFoundError: If the session is unknown and
                create_if_missing is False
        """
        pass

    @abstractmethod
    async def touch(self, session_id: str) -> bool:
        """Refresh last-access time. Returns False for unknown ids."""
        pass

    @abstractmethod
    async def sweep(self, ttl_seconds: float) -> int:
        """Remove sessions idle for longer than ttl. Returns count removed."""
        pass
