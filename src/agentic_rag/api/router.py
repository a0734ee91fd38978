"""
FastAPI Router for the RAG assistant.

Provides the SSE streaming endpoint, a WebSocket handler and a health check.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from ..domain.entities import StreamEvent
from ..orchestrator import AgentOrchestrator
from .schemas import HealthResponse, PredictRequest
from .sse import SSEEncoder, StreamSink, sse_stream, task_exception_handler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["agent"])


# =============================================================================
# Dependencies
# =============================================================================


class AgentDependencies:
    """Container for agent dependencies.

    Injected at application startup.
    """

    orchestrator: Optional[AgentOrchestrator] = None
    keep_alive_seconds: float = 30.0


_deps = AgentDependencies()


def create_agent_dependencies(
    orchestrator: Optional[AgentOrchestrator],
    keep_alive_seconds: float = 30.0,
) -> None:
    """Initialize agent dependencies.

    Call this at application startup; pass None at shutdown.

    Args:
        orchestrator: The agent orchestrator
        keep_alive_seconds: Idle interval between SSE keep-alive comments
    """
    _deps.orchestrator = orchestrator
    _deps.keep_alive_seconds = keep_alive_seconds


def get_orchestrator() -> AgentOrchestrator:
    """Get the agent orchestrator dependency."""
    if not _deps.orchestrator:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Agent not initialized",
        )
    return _deps.orchestrator


# =============================================================================
# REST Endpoints
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.post("/predict_stream")
async def predict_stream(
    body: PredictRequest,
    request: Request,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """Run one exchange and stream its events as Server-Sent Events.

    Events: tool_usage, assistant_output, then stream_end or error.
    """
    encoder = SSEEncoder()
    sink = StreamSink(
        orchestrator,
        body.session_id,
        body.to_domain(),
        keep_alive_seconds=_deps.keep_alive_seconds,
    )
    logger.info(
        f"Exchange requested: session={body.session_id}, messages={len(body.messages)}"
    )

    return StreamingResponse(
        sse_stream(sink, encoder, request.is_disconnected),
        media_type=encoder.content_type(),
        headers=encoder.extra_headers(),
    )


# =============================================================================
# WebSocket Handler
# =============================================================================


def _frame(event: StreamEvent) -> dict[str, Any]:
    return {"event": event.type.value, "data": event.payload()}


async def _stream_exchange(websocket: WebSocket, sink: StreamSink) -> None:
    """Forward one exchange's events to the WebSocket."""
    try:
        async with contextlib.aclosing(sink.events()) as events:
            async for event in events:
                if event is not None:
                    await websocket.send_json(_frame(event))
    except asyncio.CancelledError:
        logger.info(f"Session {sink.session_id}: WebSocket exchange cancelled")
        raise


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for streaming exchanges.

    Client frames:
        {"type": "chat", "session_id": "...", "messages": [...]}
        {"type": "cancel"}
        {"type": "ping"}

    Server frames are {"event": name, "data": payload}, with the same
    payloads as the SSE endpoint.
    """
    await websocket.accept()
    logger.info("WebSocket connected")

    orchestrator = _deps.orchestrator
    if not orchestrator:
        await websocket.send_json({
            "event": "error",
            "data": {
                "error_type": "internal_error",
                "message": "Agent not initialized",
                "retryable": True,
                "http_status": 503,
            },
        })
        await websocket.close()
        return

    current_task: Optional[asyncio.Task] = None

    try:
        while True:
            data = await websocket.receive_json()
            msg_type = data.get("type", "chat")

            if msg_type == "chat":
                # One exchange at a time per connection
                if current_task and not current_task.done():
                    current_task.cancel()

                try:
                    body = PredictRequest.model_validate(data)
                except PydanticValidationError as e:
                    await websocket.send_json({
                        "event": "error",
                        "data": {
                            "error_type": "validation_error",
                            "message": str(e),
                            "retryable": False,
                            "http_status": 400,
                        },
                    })
                    continue

                sink = StreamSink(orchestrator, body.session_id, body.to_domain())
                current_task = asyncio.create_task(
                    _stream_exchange(websocket, sink),
                    name=f"ws-exchange-{body.session_id}",
                )
                current_task.add_done_callback(task_exception_handler)

            elif msg_type == "cancel":
                if current_task and not current_task.done():
                    current_task.cancel()
                    await websocket.send_json({"event": "cancelled", "data": {}})

            elif msg_type == "ping":
                await websocket.send_json({"event": "pong", "data": {}})

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        if current_task and not current_task.done():
            current_task.cancel()
