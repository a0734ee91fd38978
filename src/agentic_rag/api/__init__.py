"""HTTP and WebSocket surface."""

from .router import AgentDependencies, create_agent_dependencies, get_orchestrator, router
from .schemas import MAX_MESSAGE_LENGTH, MessageIn, PredictRequest
from .sse import SSEEncoder, StreamSink, sse_stream

__all__ = [
    "router",
    "AgentDependencies",
    "create_agent_dependencies",
    "get_orchestrator",
    "MessageIn",
    "PredictRequest",
    "MAX_MESSAGE_LENGTH",
    "SSEEncoder",
    "StreamSink",
    "sse_stream",
]
