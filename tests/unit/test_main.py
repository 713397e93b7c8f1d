"""
Main Application Unit Tests

Tests for the HTTP surface with an injected service graph: health,
document lifecycle, search, question answering, streamed answers and
error-to-status mapping.

Runs without Docker - every provider is an in-process fake and storage
is in memory.
"""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import patch

import pytest
from fakes import FakeEmbeddingClient, FakeGenerationClient
from fastapi.testclient import TestClient

from beacon.api.v1.rag import STREAM_ERROR_MARKER
from beacon.core.config import BeaconSettings
from beacon.core.keywords import KeywordTable
from beacon.core.retry import NO_RETRY
from beacon.main import create_app
from beacon.repositories.documents import InMemoryDocumentStore
from beacon.services.assistant import NO_ANSWER, AssistantService
from beacon.services.chunking import TextChunker
from beacon.services.factory import Services
from beacon.services.ingestion import IngestionPipeline
from beacon.services.intent import IntentClassifier
from beacon.services.model_selector import ModelSelector
from beacon.services.prompts import RAG_SYSTEM_PROMPT
from beacon.services.retrieval import RetrievalEngine
from beacon.services.vector_store import InMemoryVectorStore

RAG = "/api/v1/rag"

DOCUMENT = {
    "title": "React Basics",
    "source": "react-basics",
    "content": "\n".join(
        [
            "React components describe the user interface as a tree of elements "
            "and re-render whenever their props or internal state change over time.",
            "The useState hook explains how a function component keeps a local "
            "value between renders and how calling the setter schedules an update.",
            "Flexbox aligns items along a main axis and a cross axis so that "
            "layouts adapt to the available space in the browser window.",
        ]
    ),
}

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _services(
    settings: BeaconSettings,
    table: KeywordTable,
    embedder: FakeEmbeddingClient,
    generator: FakeGenerationClient,
) -> Services:
    classifier = IntentClassifier(table)
    selector = ModelSelector(settings.LIGHT_MODEL, settings.HEAVY_MODEL, table)
    store = InMemoryVectorStore(dimension=embedder.dimension)
    documents = InMemoryDocumentStore()
    retriever = RetrievalEngine(embedder, store, retry_policy=NO_RETRY)
    ingestion = IngestionPipeline(
        embedder,
        store,
        documents,
        chunker=TextChunker(max_size=200, overlap=20),
        retry_policy=NO_RETRY,
        embed_delay=0,
    )
    assistant = AssistantService(
        generator, selector, classifier, retriever, None, settings
    )
    return Services(
        settings=settings,
        keywords=table,
        classifier=classifier,
        selector=selector,
        embedder=embedder,
        vector_store=store,
        documents=documents,
        retriever=retriever,
        ingestion=ingestion,
        searcher=None,
        generator=generator,
        assistant=assistant,
    )


@pytest.fixture
def services(
    test_settings: BeaconSettings,
    keyword_table: KeywordTable,
    embedder: FakeEmbeddingClient,
    generator: FakeGenerationClient,
) -> Services:
    return _services(test_settings, keyword_table, embedder, generator)


def _client(services: Services) -> Iterator[TestClient]:
    # Logging setup would detach beacon loggers from pytest's capture
    with patch("beacon.main.setup_logging"):
        with TestClient(create_app(services)) as client:
            yield client


@pytest.fixture
def client(services: Services) -> Iterator[TestClient]:
    yield from _client(services)


@pytest.fixture
def ingested(client: TestClient) -> str:
    response = client.post(f"{RAG}/documents", json=DOCUMENT)
    assert response.status_code == 202
    return response.json()["document_id"]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


def test_health_check(client: TestClient) -> None:
    """Verify /health endpoint returns correct response structure."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "beacon-rag"
    assert "environment" in data


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    def test_ingest_accepted(self, client: TestClient) -> None:
        response = client.post(f"{RAG}/documents", json=DOCUMENT)

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "processing"
        assert "React Basics" in body["message"]

    def test_background_ingestion_lists_document(
        self, client: TestClient, ingested: str
    ) -> None:
        response = client.get(f"{RAG}/documents")

        assert response.status_code == 200
        [document] = response.json()
        assert document["id"] == ingested
        assert document["title"] == "React Basics"
        assert document["chunk_count"] == 3

    def test_empty_title_rejected(self, client: TestClient) -> None:
        response = client.post(
            f"{RAG}/documents", json={"title": "", "content": "text"}
        )

        assert response.status_code == 422

    def test_delete(self, client: TestClient, ingested: str) -> None:
        response = client.delete(f"{RAG}/documents/{ingested}")

        assert response.status_code == 200
        assert response.json() == {"document_id": ingested, "chunks_deleted": 3}
        assert client.get(f"{RAG}/documents").json() == []

    def test_delete_unknown(self, client: TestClient) -> None:
        response = client.delete(
            f"{RAG}/documents/00000000-0000-0000-0000-000000000000"
        )

        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Search & answers
# ---------------------------------------------------------------------------


class TestSearch:
    def test_semantic_search(self, client: TestClient, ingested: str) -> None:
        response = client.post(
            f"{RAG}/search", json={"query": "useState hook local value", "k": 1}
        )

        assert response.status_code == 200
        [result] = response.json()
        assert result["content"].startswith("The useState hook")
        assert result["source"] == "React Basics"
        assert result["document_id"] == ingested
        assert 0.0 < result["score"] <= 1.0

    def test_keyword_boosted_search(self, client: TestClient, ingested: str) -> None:
        response = client.post(
            f"{RAG}/search",
            json={"query": "layouts", "k": 2, "keywords": ["flexbox"]},
        )

        assert response.status_code == 200
        results = response.json()
        assert len(results) == 2
        assert results[0]["content"].startswith("Flexbox")
        assert results[0]["chunk_index"] == 2

    def test_dimension_mismatch_is_reported(
        self, services: Services, client: TestClient, ingested: str
    ) -> None:
        services.retriever = RetrievalEngine(
            FakeEmbeddingClient(dimension=8),
            services.vector_store,
            retry_policy=NO_RETRY,
        )

        response = client.post(f"{RAG}/search", json={"query": "useState"})

        assert response.status_code == 500
        assert "dimension" in response.json()["detail"]

    def test_invalid_k_rejected(self, client: TestClient) -> None:
        response = client.post(f"{RAG}/search", json={"query": "q", "k": 0})

        assert response.status_code == 422


class TestAsk:
    def test_nothing_indexed(self, client: TestClient) -> None:
        response = client.post(f"{RAG}/ask", json={"query": "what is useState"})

        assert response.status_code == 200
        assert response.json() == {
            "answer": NO_ANSWER,
            "sources": [],
            "confidence": 0.0,
        }

    def test_answer_with_sources(self, client: TestClient, ingested: str) -> None:
        response = client.post(
            f"{RAG}/ask", json={"query": "useState hook local value", "k": 2}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Hello, world"
        assert [s["index"] for s in body["sources"]] == [1, 2]
        assert body["sources"][0]["document"] == "React Basics"
        assert 0.0 < body["confidence"] <= 100.0

    def test_blank_query_is_bad_request(self, client: TestClient) -> None:
        response = client.post(f"{RAG}/ask", json={"query": "   "})

        assert response.status_code == 400
        assert response.json()["detail"] == "Query cannot be empty"

    def test_provider_failure_is_service_unavailable(
        self,
        test_settings: BeaconSettings,
        keyword_table: KeywordTable,
        generator: FakeGenerationClient,
    ) -> None:
        services = _services(
            test_settings,
            keyword_table,
            FakeEmbeddingClient(fail_times=100),
            generator,
        )

        for client in _client(services):
            response = client.post(f"{RAG}/ask", json={"query": "what is useState"})

        assert response.status_code == 503
        assert "rate limited" in response.json()["detail"]


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class TestStreaming:
    def test_assistant_streams_text(self, client: TestClient) -> None:
        response = client.post(f"{RAG}/assistant", json={"query": "hello there"})

        assert response.status_code == 200
        assert response.text == "Hello, world"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["cache-control"] == "no-cache"

    def test_assistant_over_knowledge_base(
        self,
        client: TestClient,
        generator: FakeGenerationClient,
        ingested: str,
    ) -> None:
        response = client.post(
            f"{RAG}/assistant",
            json={
                "query": "I just started, what is useState",
                "use_knowledge_base": True,
            },
        )

        assert response.status_code == 200
        [request] = generator.requests
        assert request.system_prompt == RAG_SYSTEM_PROMPT
        assert "Relevant context:" in request.messages[-1].content
        assert "User Level: beginner" in request.messages[-1].content

    def test_assistant_options_forwarded(
        self, client: TestClient, generator: FakeGenerationClient
    ) -> None:
        response = client.post(
            f"{RAG}/assistant",
            json={
                "query": "hello there",
                "learning_mode": "system-design",
                "force_model": "light",
                "enable_search": False,
            },
        )

        assert response.status_code == 200
        [request] = generator.requests
        assert request.model == "light-model"
        assert "LEARNING MODE: SYSTEM DESIGN" in request.messages[-1].content

    def test_unknown_learning_mode_rejected(self, client: TestClient) -> None:
        response = client.post(
            f"{RAG}/assistant", json={"query": "q", "learning_mode": "poetry"}
        )

        assert response.status_code == 422

    def test_ask_stream_without_documents(self, client: TestClient) -> None:
        response = client.post(f"{RAG}/ask/stream", json={"query": "what is useState"})

        assert response.status_code == 200
        assert response.text == NO_ANSWER


class TestStreamingFailures:
    """Provider failures on streamed endpoints never break the connection."""

    def _client_with(
        self,
        test_settings: BeaconSettings,
        keyword_table: KeywordTable,
        generator: FakeGenerationClient,
    ) -> Iterator[TestClient]:
        services = _services(
            test_settings, keyword_table, FakeEmbeddingClient(), generator
        )
        return _client(services)

    def test_assistant_provider_down_is_service_unavailable(
        self, test_settings: BeaconSettings, keyword_table: KeywordTable
    ) -> None:
        generator = FakeGenerationClient(fail_after=0)

        for client in self._client_with(test_settings, keyword_table, generator):
            response = client.post(f"{RAG}/assistant", json={"query": "hello there"})

        assert response.status_code == 503
        assert "provider dropped the stream" in response.json()["detail"]
        assert generator.closed

    def test_ask_stream_provider_down_is_service_unavailable(
        self, test_settings: BeaconSettings, keyword_table: KeywordTable
    ) -> None:
        generator = FakeGenerationClient(fail_after=0)

        for client in self._client_with(test_settings, keyword_table, generator):
            assert client.post(f"{RAG}/documents", json=DOCUMENT).status_code == 202
            response = client.post(
                f"{RAG}/ask/stream", json={"query": "useState hook local value"}
            )

        assert response.status_code == 503
        assert "provider dropped the stream" in response.json()["detail"]

    def test_failure_after_first_token_ends_body_with_error_line(
        self, test_settings: BeaconSettings, keyword_table: KeywordTable
    ) -> None:
        generator = FakeGenerationClient(fail_after=1)

        for client in self._client_with(test_settings, keyword_table, generator):
            response = client.post(f"{RAG}/assistant", json={"query": "hello there"})

        assert response.status_code == 200
        assert response.text.startswith("Hello")
        assert response.text.endswith(
            f"{STREAM_ERROR_MARKER} provider dropped the stream\n"
        )


def test_recommendation(client: TestClient) -> None:
    response = client.get(
        f"{RAG}/recommendation", params={"query": "fix production crash"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["learning_mode"] == "debug-code"
    assert body["tier"] == "heavy"
    assert body["model"] == "heavy-model"
