"""Domain entities and port interfaces for the agentic RAG service."""

from .entities import (
    DocumentChunk,
    ErrorType,
    Message,
    MessageRole,
    RetrievedChunk,
    Session,
    SessionSnapshot,
    StreamEvent,
    StreamEventType,
    ToolDefinition,
    ToolInvocation,
    ToolOutput,
)
from .ports import (
    IChatProvider,
    IEmbeddingProvider,
    ISessionStore,
    IVectorStore,
)

__all__ = [
    # Entities
    "DocumentChunk",
    "ErrorType",
    "Message",
    "MessageRole",
    "RetrievedChunk",
    "Session",
    "SessionSnapshot",
    "StreamEvent",
    "StreamEventType",
    "ToolDefinition",
    "ToolInvocation",
    "ToolOutput",
    # Ports
    "IChatProvider",
    "IEmbeddingProvider",
    "ISessionStore",
    "IVectorStore",
]
