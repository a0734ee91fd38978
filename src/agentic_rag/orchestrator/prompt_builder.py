"""
Prompt Builder for Agent Orchestrator.

Folds retrieved document chunks into the system prompt for one exchange.
The context is rebuilt for every exchange and never stored in history.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..domain.entities import RetrievedChunk

CONTEXT_HEADER = "Context information from relevant documents:\n\n"
CONTEXT_FOOTER = "Based on the above context, please answer the user's question."


def build_context_message(chunks: Sequence[RetrievedChunk]) -> Optional[str]:
    """Format retrieved chunks, or None when there are none."""
    if not chunks:
        return None
    parts = [CONTEXT_HEADER]
    for chunk in chunks:
        parts.append(f"From {chunk.source_file}: {chunk.content}\n\n")
    parts.append(CONTEXT_FOOTER)
    return "".join(parts)


class PromptBuilder:
    """Builds the system prompt sent with each generation request.

    Usage:
        builder = PromptBuilder()
        system_prompt = builder.build(config.system_prompt, chunks)
    """

    def build(
        self,
        base_prompt: str,
        chunks: Optional[Sequence[RetrievedChunk]] = None,
    ) -> str:
        """Combine the fixed instruction with the retrieved-context message.

        Args:
            base_prompt: Fixed system instruction
            chunks: Retrieved chunks in rank order

        Returns:
            Complete system prompt
        """
        context = build_context_message(chunks or [])
        if context is None:
            return base_prompt
        return f"{base_prompt}\n\n{context}"
