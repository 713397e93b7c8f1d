"""
Service Factory

Explicit construction of every collaborator from settings. Nothing in the
service layer reads global configuration or instantiates its own clients;
this module is the single place where providers are chosen and wired.

Backends:
    VECTOR_BACKEND       memory | pgvector
    EMBEDDING_PROVIDER   openai | local
    GENERATION_PROVIDER  openai | ollama
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx
from openai import AsyncOpenAI

from beacon.core.config import BeaconSettings
from beacon.core.database import get_session_factory
from beacon.core.exceptions import BeaconError, InvariantError
from beacon.core.keywords import KeywordTable, load_keyword_table
from beacon.repositories.documents import (
    DocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
)
from beacon.services.assistant import AssistantService
from beacon.services.chunking import TextChunker
from beacon.services.embeddings import (
    EmbeddingClient,
    LocalEmbeddingClient,
    OpenAIEmbeddingClient,
)
from beacon.services.ingestion import IngestionPipeline
from beacon.services.intent import IntentClassifier
from beacon.services.llm import (
    GenerationClient,
    OllamaGenerationClient,
    OpenAIGenerationClient,
)
from beacon.services.model_selector import ModelSelector
from beacon.services.retrieval import RetrievalEngine
from beacon.services.search import WebSearchClient
from beacon.services.vector_store import (
    InMemoryVectorStore,
    PgVectorStore,
    VectorStore,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Fully wired service graph, owned by the application lifespan."""

    settings: BeaconSettings
    keywords: KeywordTable
    classifier: IntentClassifier
    selector: ModelSelector
    embedder: EmbeddingClient
    vector_store: VectorStore
    documents: DocumentStore
    retriever: RetrievalEngine
    ingestion: IngestionPipeline
    searcher: WebSearchClient | None
    generator: GenerationClient
    assistant: AssistantService
    http_clients: list[httpx.AsyncClient] = field(default_factory=list)
    openai_client: AsyncOpenAI | None = None

    async def aclose(self) -> None:
        """Close every HTTP client owned by the graph."""
        for client in self.http_clients:
            await client.aclose()
        if self.openai_client is not None:
            await self.openai_client.close()
        if isinstance(self.embedder, LocalEmbeddingClient):
            self.embedder.reset()
        logger.info("Services closed")


def build_services(settings: BeaconSettings) -> Services:
    """
    Build the service graph described by ``settings``.

    Raises:
        BeaconError: If a selected provider is missing its credentials.
        InvariantError: If the embedding dimension does not match the
            pgvector column dimension.
    """
    keywords = load_keyword_table(settings.KEYWORDS_PATH)
    classifier = IntentClassifier(keywords)
    selector = ModelSelector(settings.LIGHT_MODEL, settings.HEAVY_MODEL, keywords)

    http_clients: list[httpx.AsyncClient] = []
    openai_client: AsyncOpenAI | None = None
    if "openai" in (settings.EMBEDDING_PROVIDER, settings.GENERATION_PROVIDER):
        if not settings.OPENAI_API_KEY:
            raise BeaconError("OPENAI_API_KEY is required for the openai provider")
        openai_client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.GENERATION_TIMEOUT,
        )

    # --- Embeddings ---
    embedder: EmbeddingClient
    if settings.EMBEDDING_PROVIDER == "openai":
        assert openai_client is not None
        embedder = OpenAIEmbeddingClient(
            openai_client,
            model=settings.EMBEDDING_MODEL,
            dimension=settings.EMBEDDING_DIMENSION,
        )
    else:
        embedder = LocalEmbeddingClient(
            model_name=settings.LOCAL_EMBEDDING_MODEL,
            dimension=settings.LOCAL_EMBEDDING_DIMENSION,
        )

    # --- Storage ---
    vector_store: VectorStore
    documents: DocumentStore
    if settings.VECTOR_BACKEND == "pgvector":
        if embedder.dimension != settings.EMBEDDING_DIMENSION:
            raise InvariantError(
                f"Embedding dimension {embedder.dimension} does not match the "
                f"vector column dimension {settings.EMBEDDING_DIMENSION}"
            )
        session_factory = get_session_factory()
        vector_store = PgVectorStore(session_factory, settings.EMBEDDING_DIMENSION)
        documents = SqlDocumentStore(session_factory)
    else:
        vector_store = InMemoryVectorStore(dimension=embedder.dimension)
        documents = InMemoryDocumentStore()

    retriever = RetrievalEngine(embedder, vector_store)
    ingestion = IngestionPipeline(
        embedder,
        vector_store,
        documents,
        chunker=TextChunker(settings.CHUNK_SIZE, settings.CHUNK_OVERLAP),
        embed_delay=settings.EMBED_DELAY_SECONDS,
    )

    # --- Web search ---
    searcher: WebSearchClient | None = None
    if settings.BRAVE_API_KEY:
        search_http = httpx.AsyncClient(timeout=settings.SEARCH_TIMEOUT)
        http_clients.append(search_http)
        searcher = WebSearchClient(
            search_http,
            api_key=settings.BRAVE_API_KEY,
            keywords=keywords,
            base_url=settings.BRAVE_BASE_URL,
        )
    else:
        logger.info("BRAVE_API_KEY not set, web search disabled")

    # --- Generation ---
    generator: GenerationClient
    if settings.GENERATION_PROVIDER == "openai":
        assert openai_client is not None
        generator = OpenAIGenerationClient(openai_client)
    else:
        ollama_http = httpx.AsyncClient(timeout=settings.GENERATION_TIMEOUT)
        http_clients.append(ollama_http)
        generator = OllamaGenerationClient(ollama_http, settings.OLLAMA_BASE_URL)

    assistant = AssistantService(
        generator, selector, classifier, retriever, searcher, settings
    )

    logger.info(
        "Services ready (vectors=%s, embeddings=%s, generation=%s, search=%s)",
        settings.VECTOR_BACKEND,
        settings.EMBEDDING_PROVIDER,
        settings.GENERATION_PROVIDER,
        "on" if searcher else "off",
    )
    return Services(
        settings=settings,
        keywords=keywords,
        classifier=classifier,
        selector=selector,
        embedder=embedder,
        vector_store=vector_store,
        documents=documents,
        retriever=retriever,
        ingestion=ingestion,
        searcher=searcher,
        generator=generator,
        assistant=assistant,
        http_clients=http_clients,
        openai_client=openai_client,
    )
