"""Shared fakes for the service tests.

Fake chat providers script their output so generation, orchestration and API
tests run without any network access.
"""

import asyncio
from typing import AsyncIterator, Optional

import pytest

from agentic_rag.domain.entities import ErrorType, Message
from agentic_rag.domain.ports import IChatProvider
from agentic_rag.generation import GenerationClient
from agentic_rag.orchestrator import AgentOrchestrator
from agentic_rag.providers import DeterministicEmbeddingProvider, LLMProviderError
from agentic_rag.retrieval import InMemoryVectorStore, RetrievalClient
from agentic_rag.session import InMemorySessionStore
from agentic_rag.tools import FileReferenceTrigger, FileSummarizerTool, ToolRegistry


class ScriptedChatProvider(IChatProvider):
    """Chat provider that replays a script.

    Script items: str (yielded as a delta), an Exception (raised), or
    ("sleep", seconds) to stall.
    """

    def __init__(self, model: str, script: list):
        self._model = model
        self.script = list(script)
        self.calls: list[list[Message]] = []
        self.system_prompts: list[Optional[str]] = []
        self.closed = False

    @property
    def model_name(self) -> str:
        return self._model

    async def chat_stream(
        self,
        messages: list[Message],
        system_prompt: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        self.calls.append(list(messages))
        self.system_prompts.append(system_prompt)
        for item in self.script:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, tuple) and item[0] == "sleep":
                await asyncio.sleep(item[1])
                continue
            yield item

    async def close(self) -> None:
        self.closed = True


def provider_error(message: str = "boom", error_type: ErrorType = ErrorType.RECOVERABLE):
    return LLMProviderError(message, error_type)


@pytest.fixture
def embedder():
    return DeterministicEmbeddingProvider(dimensions=64)


@pytest.fixture
def vector_store():
    return InMemoryVectorStore(dimension=64)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def document_dir(tmp_path):
    (tmp_path / "notes.txt").write_text(
        "Remote work is allowed three days per week.\nVPN is required.\n"
    )
    return str(tmp_path)


@pytest.fixture
def tool_registry(document_dir):
    registry = ToolRegistry(triggers=[FileReferenceTrigger(document_dir)])
    registry.register(FileSummarizerTool())
    return registry


@pytest.fixture
def make_orchestrator(session_store, tool_registry, embedder, vector_store):
    """Build an orchestrator around scripted primary/fallback providers."""

    def _make(primary_script, fallback_script=None, retrieval=None, **generation_kwargs):
        primary = ScriptedChatProvider("primary-model", primary_script)
        fallback = (
            ScriptedChatProvider("fallback-model", fallback_script)
            if fallback_script is not None
            else None
        )
        generation = GenerationClient(primary, fallback, **generation_kwargs)
        orchestrator = AgentOrchestrator(
            session_store=session_store,
            tool_registry=tool_registry,
            retrieval=retrieval or RetrievalClient(embedder, vector_store, k=3, initial_delay=0.0),
            generation=generation,
        )
        return orchestrator, primary, fallback

    return _make
