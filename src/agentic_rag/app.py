"""FastAPI application for the RAG assistant.

This is the main entry point for the API server:

    uvicorn agentic_rag.app:app --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import create_agent_dependencies, router
from .config import Config, load_config
from .domain.ports import IEmbeddingProvider, IVectorStore
from .exceptions import ConfigError
from .generation import GenerationClient
from .orchestrator import AgentConfig, AgentOrchestrator
from .providers import create_chat_providers, create_embedding_provider
from .retrieval import DocumentIngestor, InMemoryVectorStore, PgVectorStore, RetrievalClient
from .session import InMemorySessionStore, SessionSweeper
from .tools import FileReferenceTrigger, FileSummarizerTool, ToolRegistry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the lifespan starts and must stop again."""

    orchestrator: AgentOrchestrator
    sweeper: SessionSweeper
    embedder: IEmbeddingProvider
    vector_store: IVectorStore
    generation: GenerationClient


async def create_vector_store(config: Config) -> IVectorStore:
    url = config.pgvector.url
    dimension = config.embedding.dimensions
    if url.startswith("memory://"):
        logger.info("Using in-memory vector store")
        return InMemoryVectorStore(dimension=dimension)

    store = await PgVectorStore.create(
        url,
        dimension=dimension,
        min_size=config.pgvector.min_pool_size,
        max_size=config.pgvector.max_pool_size,
    )
    await store.ensure_schema()
    return store


async def build_services(config: Config) -> Services:
    """Create and wire all components from configuration.

    Raises:
        ConfigError: If a provider or the vector store cannot be set up
    """
    embedder = create_embedding_provider(config.embedding)
    primary, fallback = create_chat_providers(config.llm)
    vector_store = await create_vector_store(config)

    if config.data.load_on_startup:
        ingestor = DocumentIngestor(embedder, vector_store)
        try:
            await ingestor.load_directory(config.data.document_dir)
        except ConfigError as e:
            logger.warning(f"Document loading skipped: {e}")

    session_store = InMemorySessionStore()
    sweeper = SessionSweeper(
        session_store,
        ttl_seconds=config.session.ttl_seconds,
        interval_seconds=config.session.sweep_interval_seconds,
    )

    registry = ToolRegistry(
        triggers=[FileReferenceTrigger(config.data.document_dir)],
        default_timeout=config.tools.timeout_seconds,
    )
    registry.register(FileSummarizerTool(timeout_seconds=config.tools.timeout_seconds))

    retrieval = RetrievalClient(
        embedder,
        vector_store,
        k=config.retrieval.k,
        max_attempts=config.retrieval.max_attempts,
        initial_delay=config.retrieval.initial_delay,
        backoff_factor=config.retrieval.backoff_factor,
        max_delay=config.retrieval.max_delay,
    )
    generation = GenerationClient(
        primary,
        fallback,
        first_delta_timeout=config.llm.first_delta_timeout,
        quiescence_timeout=config.llm.quiescence_timeout,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )
    orchestrator = AgentOrchestrator(
        session_store=session_store,
        tool_registry=registry,
        retrieval=retrieval,
        generation=generation,
        config=AgentConfig(retrieval_k=config.retrieval.k),
    )

    return Services(
        orchestrator=orchestrator,
        sweeper=sweeper,
        embedder=embedder,
        vector_store=vector_store,
        generation=generation,
    )


async def close_services(services: Services) -> None:
    """Stop the sweeper and release provider and database resources."""
    await services.sweeper.stop(timeout=5.0)

    await services.generation.close()
    try:
        await services.embedder.close()
    except Exception as e:
        logger.warning(f"Error closing embedding provider: {e}")

    await services.vector_store.close()
    logger.info("Vector store closed")


def create_app(config: Optional[Config] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Service configuration (loaded from CONFIG_PATH if None)
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Handles startup and shutdown events:
        - Startup: Build providers and stores, load documents, start the sweeper
        - Shutdown: Stop the sweeper, close providers and the vector store
        """
        logger.info("Starting RAG assistant API...")

        services = await build_services(config)
        await services.sweeper.start()
        create_agent_dependencies(
            services.orchestrator,
            keep_alive_seconds=config.server.keep_alive_seconds,
        )
        app.state.services = services
        logger.info("RAG assistant ready")

        yield

        # Shutdown (reverse order of initialization)
        logger.info("Shutting down RAG assistant API...")
        create_agent_dependencies(None)
        await close_services(services)

    app = FastAPI(
        title="Agentic RAG Assistant API",
        description="""
        Retrieval-augmented question answering over a document collection.

        ## Endpoints

        - **POST /predict_stream**: Run one exchange, streamed as Server-Sent Events
        - **WS /ws**: The same exchange stream over a WebSocket
        - **GET /health**: Liveness check
        """,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = load_config()
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)
