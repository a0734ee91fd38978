"""Context retrieval: embedding, vector stores and document ingestion."""

from .client import RetrievalClient
from .ingest import DocumentIngestor, TextChunk, TextChunker
from .memory_store import InMemoryVectorStore, cosine_similarity
from .pgvector_store import PgVectorStore

__all__ = [
    "RetrievalClient",
    "DocumentIngestor",
    "TextChunk",
    "TextChunker",
    "InMemoryVectorStore",
    "PgVectorStore",
    "cosine_similarity",
]
