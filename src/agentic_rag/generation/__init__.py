"""Streaming generation with primary/fallback targets."""

from .client import (
    CancellationToken,
    GenerationClient,
    GenerationState,
    GenerationStream,
)

__all__ = [
    "CancellationToken",
    "GenerationClient",
    "GenerationState",
    "GenerationStream",
]
