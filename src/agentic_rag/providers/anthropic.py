"""
Anthropic Claude LLM Provider.

Implements streaming chat for Anthropic's Claude models.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from ..domain.entities import ErrorType, Message
from .base import BaseLLMProvider, LLMProviderConfig, LLMProviderError

logger = logging.getLogger(__name__)

# Lazy import to avoid requiring anthropic if not used
try:
    import anthropic
    from anthropic import AsyncAnthropic

    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False
    anthropic = None
    AsyncAnthropic = None


class AnthropicProvider(BaseLLMProvider):
    """Anthropic Claude provider implementation.

    Anthropic has no native embeddings; pair it with the OpenAI or Voyage AI
    embedding provider.

    Usage:
        config = LLMProviderConfig(
            api_key="sk-ant-...",
            model="claude-sonnet-4-5-20250929",
        )
        provider = AnthropicProvider(config)

        async for delta in provider.chat_stream(messages, system_prompt):
            print(delta, end="")
    """

    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    def __init__(self, config: LLMProviderConfig):
        """Initialize the Anthropic provider.

        Args:
            config: Provider configuration

        Raises:
            ImportError: If anthropic package is not installed
        """
        if not ANTHROPIC_AVAILABLE:
            raise ImportError(
                "anthropic package is required for AnthropicProvider. "
                "Install with: pip install anthropic"
            )

        super().__init__(config)

        self.client = AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def chat_stream(
        self,
        messages: list[Message],
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream a completion from Claude.

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
            "messages": self._format_messages_for_api(messages),
            "temperature": temperature,
            "max_tokens": max_tokens or self.config.max_tokens,
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        try:
            async with self.client.messages.stream(**kwargs) as stream_response:
                async for event in stream_response:
                    if getattr(event, "type", None) != "content_block_delta":
                        continue
                    delta = event.delta
                    if getattr(delta, "type", None) == "text_delta" and delta.text:
                        yield delta.text

        except anthropic.RateLimitError as e:
            logger.warning(f"Rate limited by Anthropic: {e}")
            raise LLMProviderError(f"Rate limited: {e}", ErrorType.RATE_LIMIT, e)
        except anthropic.APITimeoutError as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise LLMProviderError(f"Request timed out: {e}", ErrorType.TIMEOUT, e)
        except (anthropic.AuthenticationError, anthropic.BadRequestError) as e:
            logger.error(f"Anthropic request rejected: {e}")
            raise LLMProviderError(f"API error: {e}", ErrorType.FATAL, e)
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise LLMProviderError(f"API error: {e}", ErrorType.RECOVERABLE, e)

    async def close(self) -> None:
        """Close the client."""
        await self.client.close()
