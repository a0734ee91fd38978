"""Chat and embedding provider implementations."""

from .base import BaseLLMProvider, LLMProviderConfig, LLMProviderError
from .anthropic import AnthropicProvider
from .factory import (
    create_chat_provider,
    create_chat_providers,
    create_embedding_provider,
)
from .fallback import DeterministicEmbeddingProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .voyageai import VoyageAIProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProviderError",
    "LLMProviderConfig",
    "AnthropicProvider",
    "OpenAIProvider",
    "OllamaProvider",
    "VoyageAIProvider",
    "DeterministicEmbeddingProvider",
    "create_chat_provider",
    "create_chat_providers",
    "create_embedding_provider",
]
