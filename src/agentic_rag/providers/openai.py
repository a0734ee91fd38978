"""
OpenAI GPT LLM Provider.

Implements streaming chat for OpenAI's GPT models and the embedding
interface for text-embedding-3 models.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from ..domain.entities import ErrorType, Message
from ..domain.ports import IEmbeddingProvider
from .base import BaseLLMProvider, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring openai if not used
try:
    import openai
    from openai import AsyncOpenAI

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False
    openai = None
    AsyncOpenAI = None


def _classify(e: Exception) -> tuple[str, ErrorType]:
    """Map an OpenAI SDK exception to a message and error type."""
    if isinstance(e, openai.RateLimitError):
        return f"Rate limited: {e}", ErrorType.RATE_LIMIT
    if isinstance(e, openai.APITimeoutError):
        return f"Request timed out: {e}", ErrorType.TIMEOUT
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError, openai.BadRequestError)):
        return f"API error: {e}", ErrorType.FATAL
    if isinstance(e, openai.APIError):
        return f"API error: {e}", ErrorType.RECOVERABLE
    return str(e), ErrorType.FATAL


class OpenAIProvider(BaseLLMProvider, IEmbeddingProvider):
    """OpenAI GPT provider implementation.

    Supports:
    - GPT-4o, GPT-4.1 and later chat models
    - Streaming responses
    - Embeddings (text-embedding-3-small/large, truncated to `dimensions`)

    Usage:
        config = LLMProviderConfig(
            api_key="sk-...",
            model="gpt-4o",
            embedding_model="text-embedding-3-large",
        )
        provider = OpenAIProvider(config, dimensions=1024)

        async for delta in provider.chat_stream(messages, system_prompt):
            print(delta, end="")
    """

    # Default models
    DEFAULT_MODEL = "gpt-4o-mini"
    DEFAULT_EMBEDDING_MODEL = "text-embedding-3-large"

    # Native embedding dimensions by model
    EMBEDDING_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, config: LLMProviderConfig, dimensions: Optional[int] = None):
        """Initialize the OpenAI provider.

        Args:
            config: Provider configuration
            dimensions: Requested embedding size (text-embedding-3 only)

        Raises:
            ImportError: If openai package is not installed
        """
        if not OPENAI_AVAILABLE:
            raise ImportError(
                "openai package is required for OpenAIProvider. "
                "Install with: pip install openai"
            )

        super().__init__(config)

        self.embedding_model = (
            config.embedding_model or self.DEFAULT_EMBEDDING_MODEL
        )
        self._dimensions = dimensions

        self.client = AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    @property
    def dimension(self) -> int:
        return self._dimensions or self.EMBEDDING_DIMENSIONS.get(self.embedding_model, 1536)

    def _format_messages(
        self, messages: list[Message], system_prompt: Optional[str]
    ) -> list[dict[str, Any]]:
        """OpenAI includes system messages in the messages array."""
        api_messages = []
        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})
        api_messages.extend(self._format_messages_for_api(messages))
        return api_messages

    async def chat_stream(
        self,
        messages: list[Message],
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream a completion from GPT.

        Args:
            messages: Prompt messages
            system_prompt: System prompt
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Yields:
            Text deltas

        Raises:
            LLMProviderError: On API errors
        """
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": self._format_messages(messages, system_prompt),
            "temperature": temperature,
            "stream": True,
        }
        if max_tokens or self.config.max_tokens:
            kwargs["max_tokens"] = max_tokens or self.config.max_tokens

        try:
            stream_response = await self.client.chat.completions.create(**kwargs)

            async for chunk in stream_response:
                choice = chunk.choices[0] if chunk.choices else None
                if not choice:
                    continue

                if choice.delta and choice.delta.content:
                    yield choice.delta.content

                if choice.finish_reason:
                    break

        except LLMProviderError:
            raise
        except Exception as e:
            message, error_type = _classify(e)
            if error_type == ErrorType.FATAL:
                logger.exception(f"OpenAI chat failed: {e}")
            else:
                logger.error(f"OpenAI chat error: {e}")
            raise LLMProviderError(message, error_type=error_type, original_error=e)

    def _embedding_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"model": self.embedding_model}
        if self._dimensions and self.embedding_model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self._dimensions
        return kwargs

    async def embed(self, text: str) -> tuple[list[float], str, int]:
        """Generate an embedding for text.

        Args:
            text: Text to embed

        Returns:
            Tuple of (embedding_vector, model_name, dimension)

        Raises:
            LLMProviderError: On API errors
        """
        try:
            response = await self.client.embeddings.create(
                input=text,
                **self._embedding_kwargs(),
            )
        except Exception as e:
            message, error_type = _classify(e)
            logger.error(f"OpenAI embedding error: {e}")
            raise LLMProviderError(
                f"Embedding failed: {message}",
                error_type=error_type,
                original_error=e,
            )

        embedding = response.data[0].embedding
        return embedding, self.embedding_model, len(embedding)

    async def embed_batch(self, texts: list[str]) -> list[tuple[list[float], str, int]]:
        """Generate embeddings for multiple texts in one request."""
        if not texts:
            return []

        try:
            response = await self.client.embeddings.create(
                input=texts,
                **self._embedding_kwargs(),
            )
        except Exception as e:
            message, error_type = _classify(e)
            logger.error(f"OpenAI batch embedding error: {e}")
            raise LLMProviderError(
                f"Batch embedding failed: {message}",
                error_type=error_type,
                original_error=e,
            )

        return [
            (item.embedding, self.embedding_model, len(item.embedding))
            for item in response.data
        ]

    async def close(self) -> None:
        """Close the client."""
        await self.client.close()
