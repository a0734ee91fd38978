"""
Domain entities for the agentic RAG service.

These are pure domain objects with no infrastructure dependencies.
They define the core data structures used throughout the service.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

# ============================================
# Message Types
# ============================================


class MessageRole(str, Enum):
    """Role of a message in a conversation.

    Values are the wire spelling used by the HTTP API.
    """

    USER = "User"
    ASSISTANT = "Assistant"
    TOOL = "Tool"

    @classmethod
    def parse(cls, value: str) -> MessageRole:
        """Parse a role, accepting any casing ("user", "User", "USER")."""
        for role in cls:
            if role.value.lower() == str(value).strip().lower():
                return role
        raise ValueError(f"Unknown message role: {value!r}")


@dataclass(frozen=True)
class Message:
    """A single turn in a conversation.

    Attributes:
        role: Message role (User, Assistant, Tool)
        content: Message text content
        name: Tool that produced the content (Tool messages only)
    """

    role: MessageRole
    content: str
    name: Optional[str] = None

    def __post_init__(self):
        if self.name is not None and self.role != MessageRole.TOOL:
            raise ValueError("name is only allowed on Tool messages")

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def tool(cls, name: str, content: str) -> Message:
        return cls(role=MessageRole.TOOL, content=content, name=name)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        result: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name is not None:
            result["name"] = self.name
        return result


# Immutable view of a session's history handed out by the session store
SessionSnapshot = tuple[Message, ...]


# ============================================
# Session
# ============================================


@dataclass
class Session:
    """Conversational state for one session id.

    Owned by the session store; nothing else mutates it.

    Attributes:
        id: Opaque session identifier
        history: Ordered, append-only message list
        last_touched: Monotonic timestamp of the last read or append
        created_at: Wall-clock creation time
    """

    id: str
    last_touched: float
    history: list[Message] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)

    def snapshot(self) -> SessionSnapshot:
        return tuple(self.history)


# ============================================
# Tool System
# ============================================


@dataclass
class ToolDefinition:
    """Definition of an available tool.

    Attributes:
        name: Tool name (e.g., 'file_summarizer')
        description: Human-readable description
        parameters: JSON Schema for parameters
        timeout_seconds: Maximum execution time
    """

    name: str
    description: str
    parameters: dict[str, Any]
    timeout_seconds: int = 30


@dataclass
class ToolOutput:
    """Raw outcome of a tool's execute call.

    Attributes:
        success: Whether execution succeeded
        result: Result data (if successful)
        error_message: Error message (if failed)
    """

    success: bool
    result: Any = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, result: Any) -> ToolOutput:
        return cls(success=True, result=result)

    @classmethod
    def failure(cls, message: str) -> ToolOutput:
        return cls(success=False, error_message=message)


@dataclass
class ToolInvocation:
    """Record of one tool execution within an exchange.

    Transient: folded into a Tool message and emitted once as a stream event.

    Attributes:
        tool: Tool name
        args: Arguments the tool was called with
        result: Result text ("" when the call failed)
        duration_ms: Elapsed wall time in milliseconds
        error: Error description if validation or execution failed
        id: Invocation identifier for log correlation
    """

    tool: str
    args: dict[str, Any]
    result: str = ""
    duration_ms: int = 0
    error: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_message(self) -> Message:
        """Fold the invocation into a Tool-role message."""
        content = self.result if self.succeeded else f"Error: {self.error}"
        return Message.tool(self.tool, content)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "tool": self.tool,
            "args": self.args,
            "duration_ms": self.duration_ms,
        }
        if self.succeeded:
            result["result"] = self.result
        else:
            result["error"] = self.error
        return result


# ============================================
# Retrieval
# ============================================


@dataclass(frozen=True)
class RetrievedChunk:
    """A document chunk returned by similarity search.

    Attributes:
        source_file: File the chunk was cut from
        chunk_index: Position of the chunk within its file
        content: Chunk text
        score: Cosine similarity to the query (higher is closer)
    """

    source_file: str
    chunk_index: int
    content: str
    score: float

    def sort_key(self) -> tuple[float, str, int]:
        """Descending score, then ascending (source_file, chunk_index)."""
        return (-self.score, self.source_file, self.chunk_index)


@dataclass
class DocumentChunk:
    """A chunk ready for insertion into a vector store."""

    file_name: str
    chunk_id: int
    content: str
    embedding: list[float]
    id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.id is None:
            self.id = uuid.uuid4()
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)


# ============================================
# Streaming Events
# ============================================


class StreamEventType(str, Enum):
    """Types of events produced for one exchange.

    Values are the event names used on the wire.
    """

    TOOL_USAGE = "tool_usage"  # Tool invocation record
    ASSISTANT_DELTA = "assistant_output"  # Partial assistant text
    ERROR = "error"  # Terminal failure
    STREAM_END = "stream_end"  # Terminal success


class ErrorType(str, Enum):
    """Classification of provider failures."""

    RECOVERABLE = "recoverable"  # Can retry
    FATAL = "fatal"  # Must abort
    TIMEOUT = "timeout"  # Provider timeout
    RATE_LIMIT = "rate_limit"  # Rate limited, back off

    @property
    def retryable(self) -> bool:
        return self != ErrorType.FATAL


@dataclass
class StreamEvent:
    """One event of an exchange's ordered output stream.

    Attributes:
        type: Event type
        sequence: Sequence number for ordering within the exchange
        content: Text fragment (ASSISTANT_DELTA)
        invocation: Tool invocation record (TOOL_USAGE)
        error_kind: Error kind (ERROR)
        message: Error message (ERROR)
        retryable: Whether resubmitting may succeed (ERROR)
        http_status: HTTP status equivalent of the error (ERROR)
    """

    type: StreamEventType
    sequence: int
    content: Optional[str] = None
    invocation: Optional[ToolInvocation] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    retryable: Optional[bool] = None
    http_status: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in (StreamEventType.ERROR, StreamEventType.STREAM_END)

    def payload(self) -> dict[str, Any]:
        """Event data as sent to clients."""
        if self.type == StreamEventType.TOOL_USAGE and self.invocation is not None:
            return self.invocation.to_dict()
        if self.type == StreamEventType.ASSISTANT_DELTA:
            return {"content": self.content or ""}
        if self.type == StreamEventType.ERROR:
            return {
                "error_type": self.error_kind,
                "message": self.message,
                "retryable": bool(self.retryable),
                "http_status": self.http_status,
            }
        return {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "event": self.type.value,
            "sequence": self.sequence,
            "data": self.payload(),
        }

    @classmethod
    def tool_usage(cls, invocation: ToolInvocation, sequence: int) -> StreamEvent:
        """Create a tool usage event."""
        return cls(type=StreamEventType.TOOL_USAGE, sequence=sequence, invocation=invocation)

    @classmethod
    def assistant_delta(cls, text: str, sequence: int) -> StreamEvent:
        """Create an assistant text delta event."""
        return cls(type=StreamEventType.ASSISTANT_DELTA, sequence=sequence, content=text)

    @classmethod
    def error(
        cls,
        kind: str,
        message: str,
        retryable: bool,
        sequence: int,
        http_status: int = 500,
    ) -> StreamEvent:
        """Create a terminal error event."""
        return cls(
            type=StreamEventType.ERROR,
            sequence=sequence,
            error_kind=kind,
            message=message,
            retryable=retryable,
            http_status=http_status,
        )

    @classmethod
    def stream_end(cls, sequence: int) -> StreamEvent:
        """Create the end-of-stream event."""
        return cls(type=StreamEventType.STREAM_END, sequence=sequence)
