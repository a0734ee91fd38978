"""
Base LLM Provider Implementation.

Provides common functionality for all chat and embedding providers.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from ..domain.entities import ErrorType, Message, MessageRole
from ..domain.ports import IChatProvider

logger = logging.getLogger(__name__)


class LLMProviderError(Exception):
    """Base exception for LLM provider errors."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.RECOVERABLE,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.original_error = original_error


@dataclass
class LLMProviderConfig:
    """Configuration for LLM providers.

    Attributes:
        api_key: API key for the provider
        model: Model name to use
        embedding_model: Model for embeddings (if different)
        base_url: Optional custom base URL
        timeout: Request timeout in seconds
        max_retries: SDK-level retry attempts (0 leaves retrying to callers)
        temperature: Default temperature
        max_tokens: Default max tokens
    """

    api_key: str
    model: str
    embedding_model: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 60.0
    max_retries: int = 0
    temperature: float = 0.1
    max_tokens: int = 4096
    extra: dict[str, Any] = field(default_factory=dict)


class BaseLLMProvider(IChatProvider, ABC):
    """Base class for chat provider implementations.

    Subclasses implement chat_stream for their specific APIs and raise
    LLMProviderError on failure.
    """

    def __init__(self, config: LLMProviderConfig):
        """Initialize the provider.

        Args:
            config: Provider configuration
        """
        self.config = config

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self.config.model

    def _format_messages_for_api(
        self, messages: list[Message]
    ) -> list[dict[str, Any]]:
        """Convert domain messages to chat API format.

        Tool output is shown to the model as a user turn; the chat APIs only
        accept tool results paired with a model-issued tool call.
        """
        result = []
        for msg in messages:
            if msg.role == MessageRole.TOOL:
                result.append({
                    "role": "user",
                    "content": f"Tool result ({msg.name or 'tool'}): {msg.content}",
                })
            else:
                result.append({
                    "role": msg.role.value.lower(),
                    "content": msg.content,
                })
        return result

    @abstractmethod
    def chat_stream(
        self,
        messages: list[Message],
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream a completion. Must be implemented by subclasses."""
        pass

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
