"""
Stream sink for exchange events.

Runs an exchange as a producer task and hands its events to a transport
(SSE or WebSocket) in order. When the client goes away the exchange is
cancelled: the cancellation token is set for the generation stream and the
producer task is cancelled so pending tool, retrieval and generation awaits
unwind.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional, Sequence

from ..domain.entities import Message, StreamEvent
from ..generation.client import CancellationToken
from ..orchestrator import AgentOrchestrator

logger = logging.getLogger(__name__)

_DONE = object()


def task_exception_handler(task: asyncio.Task) -> None:
    """Handle exceptions from background tasks.

    Ensures exceptions are logged and don't cause unhandled exception warnings.
    """
    try:
        exc = task.exception()
        if exc:
            logger.error(
                f"Background task {task.get_name()} failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
    except asyncio.CancelledError:
        pass  # Task was cancelled, not an error


class SSEEncoder:
    """Server-Sent Events framing."""

    def content_type(self) -> str:
        return "text/event-stream"

    def extra_headers(self) -> dict[str, str]:
        return {
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        }

    def encode(self, event: StreamEvent) -> str:
        data = json.dumps(event.payload(), ensure_ascii=False)
        return f"id: {event.sequence}\nevent: {event.type.value}\ndata: {data}\n\n"

    def keep_alive(self) -> str:
        return ": keep-alive\n\n"


class StreamSink:
    """Bridges one exchange to a transport.

    Usage:
        sink = StreamSink(orchestrator, session_id, messages)
        async with contextlib.aclosing(sink.events(request.is_disconnected)) as events:
            async for event in events:
                ...  # None means the keep-alive interval elapsed

    Attributes:
        cancel: Cancellation token shared with the exchange
    """

    def __init__(
        self,
        orchestrator: AgentOrchestrator,
        session_id: str,
        messages: Sequence[Message],
        keep_alive_seconds: float = 30.0,
        poll_interval: float = 1.0,
        max_buffered_events: int = 256,
    ):
        self.orchestrator = orchestrator
        self.session_id = session_id
        self.messages = list(messages)
        self.keep_alive_seconds = keep_alive_seconds
        self.poll_interval = min(poll_interval, keep_alive_seconds)
        self.cancel = CancellationToken()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_buffered_events)
        self._producer: Optional[asyncio.Task] = None

    async def _produce(self) -> None:
        try:
            async for event in self.orchestrator.run_exchange(
                self.session_id, self.messages, cancel=self.cancel
            ):
                await self._queue.put(event)
        finally:
            # Unblock the consumer even if the exchange was cancelled
            with contextlib.suppress(asyncio.QueueFull):
                self._queue.put_nowait(_DONE)

    def start(self) -> asyncio.Task:
        if self._producer is None:
            self._producer = asyncio.create_task(
                self._produce(), name=f"exchange-{self.session_id}"
            )
            self._producer.add_done_callback(task_exception_handler)
        return self._producer

    async def stop(self) -> None:
        """Cancel the exchange if it is still running."""
        self.cancel.cancel()
        producer = self._producer
        if producer is not None and not producer.done():
            producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer
            logger.info(f"Session {self.session_id}: exchange cancelled by disconnect")

    async def events(
        self,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[Optional[StreamEvent]]:
        """Yield exchange events in order, or None once per idle keep-alive interval.

        Stops after the terminal event, when the producer ends, or when
        is_disconnected reports the client gone. Closing the iterator early
        cancels the exchange.
        """
        producer = self.start()
        idle = 0.0
        finished = False
        try:
            while True:
                if is_disconnected is not None and await is_disconnected():
                    logger.info(f"Session {self.session_id}: client disconnected")
                    break

                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    idle += self.poll_interval
                    if idle >= self.keep_alive_seconds:
                        idle = 0.0
                        yield None
                    continue

                if item is _DONE:
                    finished = True
                    break
                idle = 0.0
                yield item
                if item.is_terminal:
                    finished = True
                    break
        finally:
            if finished:
                # The exchange has already persisted; let it unwind on its own
                await asyncio.wait({producer})
            else:
                await self.stop()


async def sse_stream(
    sink: StreamSink,
    encoder: SSEEncoder,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """Encode a sink's events as SSE frames."""
    async with contextlib.aclosing(sink.events(is_disconnected)) as events:
        async for event in events:
            if event is None:
                yield encoder.keep_alive()
            else:
                yield encoder.encode(event)
