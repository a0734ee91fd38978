"""
Document ingestion.

Splits .txt files from the document directory into overlapping chunks of
whitespace-delimited tokens, embeds them and inserts them into the vector
store. Runs once at startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from ..domain.entities import DocumentChunk
from ..domain.ports import IEmbeddingProvider, IVectorStore
from ..exceptions import ConfigError, EmbeddingError
from ..resilience import retry

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".txt",)


@dataclass
class TextChunk:
    content: str
    chunk_id: int


class TextChunker:
    """Token-window chunker.

    Tokens are whitespace-separated words. Each chunk holds up to chunk_size
    tokens and the next chunk starts overlap tokens before the previous end.
    Text that fits in one chunk is returned unchanged.
    """

    def __init__(self, chunk_size: int = 500, overlap: int = 100):
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, text: str) -> list[TextChunk]:
        tokens = text.split()
        if not tokens:
            return []
        if len(tokens) <= self.chunk_size:
            return [TextChunk(content=text, chunk_id=0)]

        chunks = []
        start = 0
        while start < len(tokens):
            end = min(start + self.chunk_size, len(tokens))
            chunks.append(TextChunk(content=" ".join(tokens[start:end]), chunk_id=len(chunks)))
            if end == len(tokens):
                break
            start = end - self.overlap
        return chunks


class DocumentIngestor:
    """Loads a directory of documents into a vector store.

    Usage:
        ingestor = DocumentIngestor(embedder, store)
        inserted = await ingestor.load_directory("./documents")
    """

    def __init__(
        self,
        embedder: IEmbeddingProvider,
        store: IVectorStore,
        chunker: Optional[TextChunker] = None,
    ):
        self.embedder = embedder
        self.store = store
        self.chunker = chunker or TextChunker()

    @retry(max_attempts=3, initial_delay=0.5, backoff_factor=2.0)
    async def _embed_batch(self, texts: list[str]) -> list[tuple[list[float], str, int]]:
        return await self.embedder.embed_batch(texts)

    async def ingest_text(self, file_name: str, text: str) -> int:
        """Chunk, embed and store one document.

        Returns:
            Number of chunks inserted

        Raises:
            EmbeddingError: If the chunks cannot be embedded after retries
            VectorStoreError: If an insert fails
        """
        chunks = self.chunker.chunk(text)
        if not chunks:
            logger.warning(f"Skipping empty document: {file_name}")
            return 0

        try:
            embeddings = await self._embed_batch([c.content for c in chunks])
        except Exception as e:
            raise EmbeddingError(f"Failed to embed {file_name}: {e}", cause=e)

        for chunk, (vector, _, _) in zip(chunks, embeddings):
            await self.store.add(
                DocumentChunk(
                    file_name=file_name,
                    chunk_id=chunk.chunk_id,
                    content=chunk.content,
                    embedding=vector,
                )
            )

        logger.info(f"Ingested {file_name}: {len(chunks)} chunks")
        return len(chunks)

    async def load_directory(self, document_dir: str) -> int:
        """Ingest every supported file in a directory (non-recursive).

        Files are processed in name order. A file that cannot be read or
        embedded is logged and skipped.

        Returns:
            Total number of chunks inserted

        Raises:
            ConfigError: If the directory does not exist
        """
        if not os.path.isdir(document_dir):
            raise ConfigError(f"Document directory not found: {document_dir}")

        total = 0
        files = 0
        for name in sorted(os.listdir(document_dir)):
            path = os.path.join(document_dir, name)
            if not os.path.isfile(path) or not name.lower().endswith(SUPPORTED_EXTENSIONS):
                continue

            try:
                with open(path, "r", encoding="utf-8") as f:
                    text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read {path}: {e}")
                continue

            try:
                total += await self.ingest_text(name, text)
                files += 1
            except EmbeddingError as e:
                logger.warning(f"Skipping {name}: {e}")

        logger.info(f"Loaded {total} chunks from {files} documents in {document_dir}")
        return total
