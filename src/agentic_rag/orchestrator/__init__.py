"""Agent Orchestrator.

Coordinates one exchange across the session store, tool registry,
retrieval client and generation client, and streams its events.
"""

from .agent import AgentConfig, AgentOrchestrator
from .conversation_manager import ConversationManager, new_turns
from .prompt_builder import PromptBuilder, build_context_message

__all__ = [
    "AgentOrchestrator",
    "AgentConfig",
    "ConversationManager",
    "PromptBuilder",
    "build_context_message",
    "new_turns",
]
