"""
Conversation Manager.

Reconciles the messages a client sends with the stored session history.
Clients resend the whole conversation on every request; the stored history
is authoritative and only the trailing inbound turns it does not already
hold are new. Stored tool turns are left out of the comparison unless the
client sends tool turns itself.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..domain.entities import Message, MessageRole, SessionSnapshot
from ..domain.ports import ISessionStore
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)


def _same_turn(a: Message, b: Message) -> bool:
    return a.role == b.role and a.content == b.content and a.name == b.name


def _overlap(history: Sequence[Message], inbound: Sequence[Message]) -> int:
    """Length of the longest history suffix that equals an inbound prefix."""
    for size in range(min(len(history), len(inbound)), 0, -1):
        tail = history[len(history) - size:]
        if all(_same_turn(h, m) for h, m in zip(tail, inbound[:size])):
            return size
    return 0


def new_turns(history: Sequence[Message], inbound: Sequence[Message]) -> list[Message]:
    """Return the inbound turns not already present in history.

    Raises:
        ValidationError: If there are no new turns or none of them is a
            User message
    """
    if not inbound:
        raise ValidationError("messages must not be empty", field="messages")

    # Clients never see stored tool turns
    if not any(m.role == MessageRole.TOOL for m in inbound):
        history = [m for m in history if m.role != MessageRole.TOOL]

    fresh = list(inbound[_overlap(history, inbound):])
    if not any(m.role == MessageRole.USER for m in fresh):
        raise ValidationError(
            "Request contains no new user message", field="messages"
        )
    return fresh


class ConversationManager:
    """Reads and persists session history for the orchestrator.

    Usage:
        manager = ConversationManager(session_store)
        snapshot, fresh = await manager.begin(session_id, inbound)
        ...
        await manager.commit(session_id, fresh + [tool_msg, assistant_msg])
    """

    def __init__(self, session_store: ISessionStore):
        self.sessions = session_store

    async def begin(
        self, session_id: str, inbound: Sequence[Message]
    ) -> tuple[SessionSnapshot, list[Message]]:
        """Snapshot the session and split out the new inbound turns."""
        snapshot = await self.sessions.get_or_create(session_id)
        fresh = new_turns(snapshot, inbound)
        if len(fresh) < len(inbound):
            logger.debug(
                f"Session {session_id}: {len(inbound) - len(fresh)} inbound turns "
                "already stored"
            )
        return snapshot, fresh

    async def commit(self, session_id: str, turns: list[Message]) -> None:
        """Persist all turns of one exchange in a single append."""
        await self.sessions.append(session_id, turns)
        logger.info(f"Session {session_id}: persisted {len(turns)} turns")
