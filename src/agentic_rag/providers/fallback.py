"""
Offline embedding provider.

Produces deterministic feature-hashed bag-of-words vectors so the service,
ingestion and tests run without any embedding API. Texts sharing words get
a positive cosine similarity; nothing here is semantically trained.
"""

from __future__ import annotations

import hashlib
import math
import re

from ..domain.ports import IEmbeddingProvider

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class DeterministicEmbeddingProvider(IEmbeddingProvider):
    """Feature-hashing embedding provider.

    Usage:
        provider = DeterministicEmbeddingProvider(dimensions=1024)
        vector, model, dim = await provider.embed("remote work policy")
    """

    MODEL_NAME = "deterministic-hash-v1"

    def __init__(self, dimensions: int = 1024):
        if dimensions < 1:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions

    @property
    def dimension(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self.MODEL_NAME

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self._dimensions, sign

    def vectorize(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for token in _TOKEN_RE.findall(text.lower()):
            index, sign = self._bucket(token)
            vector[index] += sign

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0.0:
            # Empty or symbol-only text: constant unit vector
            return [1.0 / math.sqrt(self._dimensions)] * self._dimensions
        return [v / norm for v in vector]

    async def embed(self, text: str) -> tuple[list[float], str, int]:
        return self.vectorize(text), self.MODEL_NAME, self._dimensions

    async def embed_batch(self, texts: list[str]) -> list[tuple[list[float], str, int]]:
        return [(self.vectorize(t), self.MODEL_NAME, self._dimensions) for t in texts]
