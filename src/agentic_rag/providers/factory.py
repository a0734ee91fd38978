"""
Provider construction from service configuration.

API keys come from the environment (OPENAI_API_KEY, ANTHROPIC_API_KEY,
VOYAGE_API_KEY); the Ollama endpoint from OLLAMA_BASE_URL.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..config import EmbeddingConfig, LlmConfig
from ..domain.ports import IChatProvider, IEmbeddingProvider
from ..exceptions import ConfigError
from .base import LLMProviderConfig

logger = logging.getLogger(__name__)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigError(f"{name} is not set", missing_keys=[name])
    return value


def create_chat_provider(provider: str, model: str, llm: LlmConfig) -> IChatProvider:
    """Create a chat provider for one generation target.

    Args:
        provider: Provider name ("anthropic", "openai" or "ollama")
        model: Model id to request
        llm: Shared sampling and timeout settings

    Returns:
        Chat provider bound to the model

    Raises:
        ConfigError: If the provider is unknown or its API key is missing
    """
    if provider == "anthropic":
        from .anthropic import AnthropicProvider

        config = LLMProviderConfig(
            api_key=_require_env("ANTHROPIC_API_KEY"),
            model=model,
            timeout=llm.request_timeout,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )
        chat = AnthropicProvider(config)
    elif provider == "openai":
        from .openai import OpenAIProvider

        config = LLMProviderConfig(
            api_key=_require_env("OPENAI_API_KEY"),
            model=model,
            base_url=os.getenv("OPENAI_BASE_URL"),
            timeout=llm.request_timeout,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )
        chat = OpenAIProvider(config)
    elif provider == "ollama":
        from .ollama import OllamaProvider

        config = LLMProviderConfig(
            api_key="not-needed",
            model=model,
            base_url=os.getenv("OLLAMA_BASE_URL"),
            timeout=llm.request_timeout,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )
        chat = OllamaProvider(config)
    else:
        raise ConfigError(f"Unknown llm provider '{provider}'")

    logger.info(f"Using {provider} chat provider with model: {model}")
    return chat


def create_chat_providers(
    llm: LlmConfig,
) -> tuple[IChatProvider, Optional[IChatProvider]]:
    """Create the primary and optional fallback chat providers."""
    primary = create_chat_provider(llm.provider, llm.primary, llm)

    fallback = None
    if llm.fallback:
        fallback = create_chat_provider(
            llm.fallback_provider or llm.provider, llm.fallback, llm
        )
    else:
        logger.info("No fallback model configured")

    return primary, fallback


def create_embedding_provider(embedding: EmbeddingConfig) -> IEmbeddingProvider:
    """Create the embedding provider named in configuration.

    Raises:
        ConfigError: If the provider is unknown or its API key is missing
    """
    name = embedding.provider

    if name == "fallback":
        from .fallback import DeterministicEmbeddingProvider

        provider = DeterministicEmbeddingProvider(dimensions=embedding.dimensions)
    elif name == "openai":
        from .openai import OpenAIProvider

        config = LLMProviderConfig(
            api_key=_require_env("OPENAI_API_KEY"),
            model="gpt-4o",  # Not used for embeddings
            embedding_model=embedding.model,
            base_url=os.getenv("OPENAI_BASE_URL"),
        )
        provider = OpenAIProvider(config, dimensions=embedding.dimensions)
    elif name == "voyageai":
        from .voyageai import VoyageAIProvider

        provider = VoyageAIProvider(
            api_key=_require_env("VOYAGE_API_KEY"),
            model=embedding.model,
        )
    elif name == "ollama":
        from .ollama import OllamaProvider

        config = LLMProviderConfig(
            api_key="not-needed",
            model=OllamaProvider.DEFAULT_MODEL,
            embedding_model=embedding.model,
            base_url=os.getenv("OLLAMA_BASE_URL"),
        )
        provider = OllamaProvider(config, dimensions=embedding.dimensions)
    else:
        raise ConfigError(f"Unknown embedding provider '{name}'")

    if provider.dimension != embedding.dimensions:
        raise ConfigError(
            f"Embedding model {provider.model_name} produces {provider.dimension} "
            f"dimensions, expected {embedding.dimensions}"
        )

    logger.info(
        f"Embedding provider configured: {provider.model_name} ({provider.dimension} dims)"
    )
    return provider
