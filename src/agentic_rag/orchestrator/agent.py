"""
Agent Orchestrator.

Runs one exchange end to end and streams its events:
- Session snapshot and reconciliation of inbound turns
- Optional single tool invocation
- Context retrieval (degrades to no context on failure)
- Streaming generation with fallback
- All-or-nothing persistence of the exchange
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from ..domain.entities import Message, MessageRole, RetrievedChunk, StreamEvent
from ..domain.ports import ISessionStore
from ..exceptions import AgentError, InternalError, RetrievalError
from ..generation.client import CancellationToken, GenerationClient
from ..retrieval.client import RetrievalClient
from ..tools.registry import ToolRegistry
from .conversation_manager import ConversationManager
from .prompt_builder import PromptBuilder

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Configuration for the agent orchestrator.

    Attributes:
        system_prompt: Fixed instruction sent with every generation request
        retrieval_k: Number of chunks to retrieve per exchange
    """

    system_prompt: str = (
        "You are a helpful assistant that answers questions using the provided "
        "document context and tool results. If the context does not contain the "
        "answer, say so plainly instead of guessing. Keep answers concise."
    )
    retrieval_k: int = 5


class AgentOrchestrator:
    """Per-exchange pipeline.

    Event order within an exchange is always: at most one tool usage event,
    then assistant deltas, then exactly one terminal event (stream end or
    error). A cancelled exchange stops without a terminal event.

    Usage:
        orchestrator = AgentOrchestrator(
            session_store=store,
            tool_registry=registry,
            retrieval=retrieval_client,
            generation=generation_client,
        )

        async for event in orchestrator.run_exchange(session_id, messages):
            await sink.send(event)
    """

    def __init__(
        self,
        session_store: ISessionStore,
        tool_registry: ToolRegistry,
        retrieval: RetrievalClient,
        generation: GenerationClient,
        config: Optional[AgentConfig] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.sessions = session_store
        self.conversations = ConversationManager(session_store)
        self.tools = tool_registry
        self.retrieval = retrieval
        self.generation = generation
        self.config = config or AgentConfig()
        self.prompt_builder = prompt_builder or PromptBuilder()

        self.stats: dict[str, int] = {
            "exchanges": 0,
            "completed": 0,
            "failed": 0,
            "cancelled": 0,
            "tool_invocations": 0,
            "retrieval_degraded": 0,
        }

    async def _retrieve(self, query: str) -> list[RetrievedChunk]:
        try:
            return await self.retrieval.retrieve(query, self.config.retrieval_k)
        except RetrievalError as e:
            self.stats["retrieval_degraded"] += 1
            logger.warning(f"Retrieval degraded, continuing without context: {e}")
            return []

    async def run_exchange(
        self,
        session_id: str,
        messages: Sequence[Message],
        cancel: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Process one request and stream its events.

        Args:
            session_id: Session identifier
            messages: Conversation as sent by the client
            cancel: Cancellation signal shared with the transport

        Yields:
            StreamEvent objects in sequence order
        """
        cancel = cancel or CancellationToken()
        sequence = 0

        def next_sequence() -> int:
            nonlocal sequence
            sequence += 1
            return sequence

        self.stats["exchanges"] += 1
        stream = None

        try:
            snapshot, fresh = await self.conversations.begin(session_id, messages)
            working = list(snapshot) + fresh
            user_index = max(
                i for i, m in enumerate(working) if m.role == MessageRole.USER
            )
            latest_user = working[user_index]
            pending = list(fresh)

            # Tool stage: single boolean gate on the latest user turn
            decision = self.tools.decide(working[:user_index], latest_user)
            if decision is not None:
                tool_name, args = decision
                invocation = await self.tools.execute(tool_name, args)
                self.stats["tool_invocations"] += 1
                tool_message = invocation.to_message()
                working.append(tool_message)
                pending.append(tool_message)
                yield StreamEvent.tool_usage(invocation, next_sequence())

            if cancel.is_cancelled:
                self.stats["cancelled"] += 1
                logger.info(f"Session {session_id}: exchange cancelled before retrieval")
                return

            chunks = await self._retrieve(latest_user.content)
            system_prompt = self.prompt_builder.build(self.config.system_prompt, chunks)

            stream = self.generation.generate(working, system_prompt=system_prompt, cancel=cancel)
            assistant_text: list[str] = []
            async for delta in stream:
                assistant_text.append(delta)
                yield StreamEvent.assistant_delta(delta, next_sequence())

            if cancel.is_cancelled:
                self.stats["cancelled"] += 1
                logger.info(
                    f"Session {session_id}: exchange cancelled, discarding "
                    f"{len(assistant_text)} deltas"
                )
                return

            text = "".join(assistant_text)
            if text:
                pending.append(Message.assistant(text))
            else:
                logger.warning(f"Session {session_id}: model returned an empty response")

            await self.conversations.commit(session_id, pending)
            self.stats["completed"] += 1
            yield StreamEvent.stream_end(next_sequence())

        except asyncio.CancelledError:
            self.stats["cancelled"] += 1
            cancel.cancel()
            logger.info(f"Session {session_id}: exchange task cancelled")
            raise

        except AgentError as e:
            self.stats["failed"] += 1
            logger.error(f"Session {session_id}: exchange failed ({e.kind}): {e}")
            yield StreamEvent.error(
                e.kind, e.message, e.retryable, next_sequence(), http_status=e.http_status
            )

        except Exception as e:
            self.stats["failed"] += 1
            logger.exception(f"Session {session_id}: unexpected error in exchange")
            error = InternalError(f"Internal error: {e}", cause=e)
            yield StreamEvent.error(
                error.kind, error.message, error.retryable, next_sequence(),
                http_status=error.http_status,
            )

        finally:
            if stream is not None:
                await stream.aclose()
