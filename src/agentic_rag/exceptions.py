"""Exception hierarchy for the agentic RAG service.

Every error raised by the service inherits from AgentError, so a single
except clause catches all service-specific failures. Each class declares the
stream error kind it maps to, the HTTP status used when it reaches a client,
and whether the client should resubmit the request.

Exception Hierarchy:
    AgentError (base)
    ├── ConfigError (unrecoverable - fix config)
    ├── ValidationError (bad request payload)
    ├── SessionNotFoundError (never surfaced - session is recreated)
    ├── ToolError (non-fatal - folded into the exchange)
    ├── RetrievalError (non-fatal - degrades to empty context)
    │   ├── EmbeddingError
    │   └── VectorStoreError
    ├── GenerationError (fatal once the fallback is exhausted)
    └── InternalError (unexpected fault)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

# ============================================
# Base Exception
# ============================================


class AgentError(Exception):
    """Base exception for all service errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "TOOL_ERROR")
        details: Additional context as a dictionary
        timestamp: When the error occurred
        cause: The original exception that caused this error
        recoverable: Whether the exchange can continue past this error
    """

    kind: str = "internal_error"
    http_status: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__.upper()
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        self.cause = cause
        self.recoverable = recoverable

        if cause:
            self.__cause__ = cause

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"details={self.details!r}, "
            f"retryable={self.retryable})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.kind,
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "retryable": self.retryable,
            "http_status": self.http_status,
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================
# Startup / Request Errors
# ============================================


class ConfigError(AgentError):
    """Raised when configuration is missing or invalid."""

    kind = "config_error"
    http_status = 500
    retryable = False

    def __init__(
        self,
        message: str,
        missing_keys: Optional[list[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if missing_keys:
            details["missing_keys"] = missing_keys
        super().__init__(message, code="CONFIG_ERROR", details=details, **kwargs)


class ValidationError(AgentError):
    """Raised when an inbound request cannot be processed as given."""

    kind = "validation_error"
    http_status = 400
    retryable = False

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(message, code="VALIDATION_ERROR", details=details, **kwargs)


class SessionNotFoundError(AgentError):
    """Raised by strict session operations when the id is unknown."""

    kind = "session_error"
    http_status = 422
    retryable = False

    def __init__(self, session_id: str, **kwargs):
        super().__init__(
            f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id},
            **kwargs,
        )
        self.session_id = session_id


# ============================================
# Pipeline Errors
# ============================================


class ToolError(AgentError):
    """Raised for tool registration, validation and execution failures.

    Tool failures never end an exchange; the registry converts them into a
    ToolInvocation with its error populated.
    """

    kind = "tool_error"
    http_status = 400
    retryable = False

    def __init__(self, tool_name: str, message: str, recoverable: bool = True, **kwargs):
        details = kwargs.pop("details", {})
        details["tool_name"] = tool_name
        super().__init__(
            message,
            code="TOOL_ERROR",
            details=details,
            recoverable=recoverable,
            **kwargs,
        )
        self.tool_name = tool_name


class RetrievalError(AgentError):
    """Raised when context retrieval fails after its retries."""

    kind = "retrieval_error"
    http_status = 500
    retryable = True

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "RETRIEVAL_ERROR")
        super().__init__(message, recoverable=True, **kwargs)


class EmbeddingError(RetrievalError):
    """Raised when the embedding provider cannot embed the query."""

    kind = "embedding_error"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "EMBEDDING_ERROR")
        super().__init__(message, **kwargs)


class VectorStoreError(RetrievalError):
    """Raised when the vector index cannot be queried or written."""

    kind = "vector_store_error"

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "VECTOR_STORE_ERROR")
        super().__init__(message, **kwargs)


class GenerationError(AgentError):
    """Raised when the language model cannot produce a completion.

    Attributes:
        retryable: Instance-level override; timeouts, rate limits and
            transient API errors are worth resubmitting, fatal ones are not.
        target: Model id of the generation target that failed last
    """

    kind = "generation_error"
    http_status = 503

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        target: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if target:
            details["target"] = target
        super().__init__(message, code="GENERATION_ERROR", details=details, **kwargs)
        self.retryable = retryable
        self.target = target


class InternalError(AgentError):
    """Unexpected fault inside the pipeline."""

    kind = "internal_error"
    http_status = 500
    retryable = False
