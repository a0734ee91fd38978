"""
Unit tests for the Voyage AI embedding provider.

Note: Voyage AI only supports embeddings, not chat.
"""

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

from agentic_rag.providers.voyageai import VoyageAIProvider, VOYAGEAI_AVAILABLE
from agentic_rag.providers.base import LLMProviderError
from agentic_rag.domain.entities import ErrorType


# Skip if voyageai not installed
pytestmark = pytest.mark.skipif(
    not VOYAGEAI_AVAILABLE,
    reason="voyageai package not installed"
)


@pytest.fixture
def mock_voyageai_client():
    """Mock Voyage AI async client."""
    client = MagicMock()

    mock_embedding_response = MagicMock()
    mock_embedding_response.embeddings = [
        [0.1] * 1024  # voyage-3 dimension
    ]
    client.embed = AsyncMock(return_value=mock_embedding_response)

    return client


@pytest.fixture
def provider(mock_voyageai_client):
    with patch(
        "agentic_rag.providers.voyageai.voyageai.AsyncClient",
        return_value=mock_voyageai_client,
    ):
        yield VoyageAIProvider(api_key="pa-test-api-key", model="voyage-3")


class TestVoyageAIProvider:
    """Tests for Voyage AI provider setup."""

    def test_init_success(self, provider):
        assert provider.model_name == "voyage-3"
        assert provider.dimension == 1024

    def test_init_without_package(self):
        """Provider raises ImportError if voyageai not installed."""
        with patch("agentic_rag.providers.voyageai.VOYAGEAI_AVAILABLE", False):
            with pytest.raises(ImportError, match="voyageai package is required"):
                VoyageAIProvider(api_key="test-key")

    def test_default_embedding_model(self):
        with patch("agentic_rag.providers.voyageai.voyageai.AsyncClient"):
            provider = VoyageAIProvider(api_key="test-key")
            assert provider.embedding_model == "voyage-3"

    def test_lite_model_dimension(self):
        with patch("agentic_rag.providers.voyageai.voyageai.AsyncClient"):
            provider = VoyageAIProvider(api_key="test-key", model="voyage-3-lite")
            assert provider.dimension == 512


class TestVoyageAIEmbeddings:
    """Tests for Voyage AI embedding functionality."""

    @pytest.mark.asyncio
    async def test_embed_single_text(self, provider, mock_voyageai_client):
        """Queries are embedded with input_type='query'."""
        embedding, model, dimension = await provider.embed("test text")

        assert len(embedding) == 1024
        assert model == "voyage-3"
        assert dimension == 1024
        mock_voyageai_client.embed.assert_awaited_once_with(
            ["test text"],
            model="voyage-3",
            input_type="query",
        )

    @pytest.mark.asyncio
    async def test_embed_batch(self, provider, mock_voyageai_client):
        """Document chunks are embedded with input_type='document'."""
        mock_batch_response = MagicMock()
        mock_batch_response.embeddings = [
            [0.1] * 1024,
            [0.2] * 1024,
        ]
        mock_voyageai_client.embed = AsyncMock(return_value=mock_batch_response)

        results = await provider.embed_batch(["first", "second"])

        assert len(results) == 2
        assert results[1][0][0] == 0.2
        assert mock_voyageai_client.embed.call_args.kwargs["input_type"] == "document"

    @pytest.mark.asyncio
    async def test_embed_batch_empty(self, provider, mock_voyageai_client):
        assert await provider.embed_batch([]) == []
        mock_voyageai_client.embed.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message, error_type",
        [
            ("Rate limit exceeded (429)", ErrorType.RATE_LIMIT),
            ("Request timed out", ErrorType.TIMEOUT),
            ("Invalid API key provided", ErrorType.FATAL),
            ("Service unavailable", ErrorType.RECOVERABLE),
        ],
    )
    async def test_errors_classified(self, provider, mock_voyageai_client, message, error_type):
        """SDK errors are classified by message."""
        mock_voyageai_client.embed = AsyncMock(side_effect=Exception(message))

        with pytest.raises(LLMProviderError) as exc_info:
            await provider.embed("test")

        assert exc_info.value.error_type == error_type
