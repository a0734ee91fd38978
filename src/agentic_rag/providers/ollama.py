"""
Ollama LLM Provider.

Implements streaming chat and embeddings against Ollama's local HTTP API.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

from ..domain.entities import ErrorType, Message
from ..domain.ports import IEmbeddingProvider
from .base import BaseLLMProvider, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring httpx if not used
try:
    import httpx

    OLLAMA_AVAILABLE = True
except ImportError:
    OLLAMA_AVAILABLE = False
    httpx = None


class OllamaProvider(BaseLLMProvider, IEmbeddingProvider):
    """Ollama local LLM provider implementation.

    Usage:
        config = LLMProviderConfig(
            api_key="not-needed",  # Ollama doesn't require auth
            model="qwen3:4b",
            base_url="http://localhost:11434",
        )
        provider = OllamaProvider(config)

        async for delta in provider.chat_stream(messages, system_prompt):
            print(delta, end="")
    """

    # Default configuration
    DEFAULT_MODEL = "qwen3:4b"
    DEFAULT_BASE_URL = "http://localhost:11434"
    DEFAULT_EMBEDDING_MODEL = "mxbai-embed-large"  # 1024 dimensions

    def __init__(self, config: LLMProviderConfig, dimensions: int = 1024):
        """Initialize the Ollama provider.

        Args:
            config: Provider configuration
            dimensions: Expected embedding size of the embedding model

        Raises:
            ImportError: If httpx package is not installed
        """
        if not OLLAMA_AVAILABLE:
            raise ImportError(
                "httpx package is required for OllamaProvider. "
                "Install with: pip install httpx"
            )

        super().__init__(config)

        self.base_url = config.base_url or self.DEFAULT_BASE_URL
        self.embedding_model = (
            config.embedding_model or self.DEFAULT_EMBEDDING_MODEL
        )
        self._dimensions = dimensions

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.timeout,
        )

    @property
    def dimension(self) -> int:
        return self._dimensions

    def _format_messages(
        self, messages: list[Message], system_prompt: Optional[str]
    ) -> list[dict[str, Any]]:
        """Ollama uses OpenAI-compatible message format."""
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
        """Stream a completion from Ollama's /api/chat endpoint.

        Yields:
            Text deltas

        Raises:
            LLMProviderError: On HTTP, timeout or connection errors
        """
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": self._format_messages(messages, system_prompt),
            "stream": True,
            "options": {
                "temperature": temperature,
            },
        }
        if max_tokens:
            payload["options"]["num_predict"] = max_tokens

        try:
            async with self.client.stream("POST", "/api/chat", json=payload) as response:
                response.raise_for_status()

                # Newline-delimited JSON stream
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue

                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError as e:
                        logger.warning(f"Failed to parse Ollama response: {e}")
                        continue

                    if chunk.get("error"):
                        raise LLMProviderError(
                            f"Ollama error: {chunk['error']}",
                            error_type=ErrorType.RECOVERABLE,
                        )

                    content = chunk.get("message", {}).get("content", "")
                    if content:
                        yield content

                    if chunk.get("done"):
                        break

        except httpx.HTTPStatusError as e:
            error_msg = f"Ollama API error: {e.response.status_code}"
            logger.error(error_msg)
            error_type = ErrorType.FATAL if e.response.status_code == 404 else ErrorType.RECOVERABLE
            raise LLMProviderError(error_msg, error_type, e)

        except httpx.TimeoutException as e:
            error_msg = f"Ollama request timeout: {str(e)}"
            logger.error(error_msg)
            raise LLMProviderError(error_msg, ErrorType.TIMEOUT, e)

        except httpx.RequestError as e:
            error_msg = f"Ollama connection error: {str(e)}"
            logger.error(error_msg)
            raise LLMProviderError(error_msg, ErrorType.RECOVERABLE, e)

    async def embed(self, text: str) -> tuple[list[float], str, int]:
        """Generate an embedding using Ollama.

        Returns:
            Tuple of (embedding_vector, model_name, dimension)

        Raises:
            LLMProviderError: If embedding generation fails
        """
        try:
            response = await self.client.post(
                "/api/embeddings",
                json={
                    "model": self.embedding_model,
                    "prompt": text,
                },
            )
            response.raise_for_status()

        except httpx.HTTPStatusError as e:
            raise LLMProviderError(
                f"Ollama embedding API error: {e.response.status_code}",
                error_type=ErrorType.RECOVERABLE,
                original_error=e,
            )

        except httpx.TimeoutException as e:
            raise LLMProviderError(
                f"Ollama embedding timeout: {str(e)}",
                error_type=ErrorType.TIMEOUT,
                original_error=e,
            )

        except httpx.RequestError as e:
            raise LLMProviderError(
                f"Ollama connection error: {str(e)}",
                error_type=ErrorType.RECOVERABLE,
                original_error=e,
            )

        embedding = response.json().get("embedding", [])
        if not embedding:
            raise LLMProviderError(
                "No embedding returned from Ollama",
                error_type=ErrorType.RECOVERABLE,
            )

        return embedding, self.embedding_model, len(embedding)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
