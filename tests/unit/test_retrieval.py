"""
Retrieval Engine Unit Tests

Verifies find_relevant_chunks (ranking, top_k bound, document scope,
similarity clamping, interactive retry) and hybrid_search keyword
re-ranking, over the in-memory vector store and a bag-of-words embedder.

No external services required — runs entirely offline.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from typing import Any

import pytest
import pytest_asyncio
from fakes import FakeEmbeddingClient

from beacon.core.exceptions import EmbeddingServiceError
from beacon.core.retry import NO_RETRY, RetryPolicy
from beacon.models.schemas import Document
from beacon.repositories.documents import InMemoryDocumentStore
from beacon.services.chunking import TextChunker
from beacon.services.ingestion import IngestionPipeline
from beacon.services.retrieval import RetrievalEngine, keyword_boost
from beacon.services.vector_store import InMemoryVectorStore, VectorMatch

PARAGRAPHS = [
    "React components describe the user interface as a tree of elements and "
    "re-render whenever their props or internal state change over time.",
    "The useState hook explains how a function component keeps a local value "
    "between renders and how calling the setter schedules an update.",
    "Flexbox aligns items along a main axis and a cross axis so that layouts "
    "adapt to the available space in the browser window.",
    "Database indexes speed up lookups by keeping sorted copies of selected "
    "columns at the cost of slower writes and extra disk space.",
    "Promises represent values that arrive later and let asynchronous code "
    "chain callbacks without deeply nested functions.",
]


class StubStore:
    """Vector store returning canned matches and recording queries."""

    def __init__(self, matches: list[VectorMatch]) -> None:
        self.matches = matches
        self.queries: list[tuple[int, Mapping[str, Any] | None]] = []

    async def upsert(self, *args: Any, **kwargs: Any) -> None:
        raise NotImplementedError

    async def delete_by_document(self, document_id: Any) -> int:
        return 0

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        self.queries.append((top_k, filter))
        return self.matches[:top_k]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(embedder: FakeEmbeddingClient) -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=embedder.dimension)


@pytest.fixture
def engine(
    embedder: FakeEmbeddingClient, store: InMemoryVectorStore
) -> RetrievalEngine:
    return RetrievalEngine(embedder, store, retry_policy=NO_RETRY)


@pytest_asyncio.fixture
async def corpus(
    embedder: FakeEmbeddingClient, store: InMemoryVectorStore
) -> Document:
    """Five single-sentence paragraphs indexed as five chunks."""
    pipeline = IngestionPipeline(
        embedder,
        store,
        InMemoryDocumentStore(),
        chunker=TextChunker(max_size=200, overlap=20),
        retry_policy=NO_RETRY,
        embed_delay=0,
    )
    document = Document(title="Frontend Notes", content="\n".join(PARAGRAPHS))
    result = await pipeline.ingest_document(document)
    assert result.chunks_count == 5
    return document


# ---------------------------------------------------------------------------
# find_relevant_chunks
# ---------------------------------------------------------------------------


class TestFindRelevantChunks:
    @pytest.mark.asyncio
    async def test_best_chunk_first(
        self, engine: RetrievalEngine, corpus: Document
    ) -> None:
        contexts = await engine.find_relevant_chunks("How does useState work?", top_k=3)

        assert len(contexts) == 3
        assert "useState" in contexts[0].text
        assert contexts[0].document_title == "Frontend Notes"
        assert contexts[0].document_id == str(corpus.id)
        similarities = [ctx.similarity for ctx in contexts]
        assert similarities == sorted(similarities, reverse=True)

    @pytest.mark.asyncio
    async def test_hook_chunk_outranks_unrelated_css_chunk(
        self, engine: RetrievalEngine, corpus: Document
    ) -> None:
        contexts = await engine.find_relevant_chunks("How does useState work?", top_k=5)

        hook = next(ctx for ctx in contexts if "useState" in ctx.text)
        flexbox = next(ctx for ctx in contexts if ctx.text.startswith("Flexbox"))
        assert contexts[0] is hook
        assert hook.similarity > flexbox.similarity

    @pytest.mark.asyncio
    async def test_top_k_bounds_results(
        self, engine: RetrievalEngine, corpus: Document
    ) -> None:
        assert len(await engine.find_relevant_chunks("hooks", top_k=2)) == 2
        assert len(await engine.find_relevant_chunks("hooks", top_k=10)) == 5
        assert await engine.find_relevant_chunks("hooks", top_k=0) == []

    @pytest.mark.asyncio
    async def test_empty_corpus(self, engine: RetrievalEngine) -> None:
        assert await engine.find_relevant_chunks("anything at all") == []

    @pytest.mark.asyncio
    async def test_document_scope(
        self, engine: RetrievalEngine, corpus: Document
    ) -> None:
        scoped = await engine.find_relevant_chunks("useState", document_id=corpus.id)
        other = await engine.find_relevant_chunks("useState", document_id=uuid.uuid4())

        assert scoped
        assert other == []

    @pytest.mark.asyncio
    async def test_similarity_clamped_to_unit_interval(
        self, embedder: FakeEmbeddingClient
    ) -> None:
        store = StubStore(
            [
                VectorMatch("a", 1.0000002, {"text": "same", "title": "T"}),
                VectorMatch("b", -0.4, {"text": "opposite"}),
            ]
        )
        engine = RetrievalEngine(embedder, store, retry_policy=NO_RETRY)

        contexts = await engine.find_relevant_chunks("query")

        assert [ctx.similarity for ctx in contexts] == [1.0, 0.0]
        assert contexts[1].document_title == "Unknown"

    @pytest.mark.asyncio
    async def test_embedding_retried_once(self, store: InMemoryVectorStore) -> None:
        flaky = FakeEmbeddingClient(fail_times=1)
        engine = RetrievalEngine(
            flaky, store, retry_policy=RetryPolicy(max_retries=1, delays=(0.0,))
        )

        assert await engine.find_relevant_chunks("query") == []
        assert len(flaky.calls) == 2

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(
        self, store: InMemoryVectorStore
    ) -> None:
        failing = FakeEmbeddingClient(fail_times=5)
        engine = RetrievalEngine(
            failing, store, retry_policy=RetryPolicy(max_retries=1, delays=(0.0,))
        )

        with pytest.raises(EmbeddingServiceError):
            await engine.find_relevant_chunks("query")


# ---------------------------------------------------------------------------
# hybrid_search
# ---------------------------------------------------------------------------


class TestHybridSearch:
    def test_keyword_boost(self) -> None:
        text = "The useState Hook returns state and a setter"

        assert keyword_boost(text, ["usestate", "SETTER"]) == pytest.approx(0.2)
        assert keyword_boost(text, ["redux"]) == 0.0
        assert keyword_boost(text, []) == 0.0

    @pytest.mark.asyncio
    async def test_fetches_twice_top_k_and_reranks(
        self, embedder: FakeEmbeddingClient
    ) -> None:
        store = StubStore(
            [
                VectorMatch("1", 0.90, {"text": "generic intro"}),
                VectorMatch("2", 0.85, {"text": "useEffect cleanup"}),
                VectorMatch("3", 0.84, {"text": "useState and useEffect together"}),
                VectorMatch("4", 0.50, {"text": "unrelated"}),
            ]
        )
        engine = RetrievalEngine(embedder, store, retry_policy=NO_RETRY)

        matches = await engine.hybrid_search(
            [1.0], ["usestate", "useeffect"], top_k=2, filter={"lang": "en"}
        )

        assert store.queries == [(4, {"lang": "en"})]
        assert [m.id for m in matches] == ["3", "2"]
        assert matches[0].score == pytest.approx(1.04)

    @pytest.mark.asyncio
    async def test_equal_scores_keep_store_order(
        self, embedder: FakeEmbeddingClient
    ) -> None:
        store = StubStore(
            [
                VectorMatch("1", 0.5, {"text": "alpha"}),
                VectorMatch("2", 0.5, {"text": "beta"}),
            ]
        )
        engine = RetrievalEngine(embedder, store, retry_policy=NO_RETRY)

        matches = await engine.hybrid_search([1.0], ["gamma"], top_k=2)

        assert [m.id for m in matches] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_zero_top_k(self, embedder: FakeEmbeddingClient) -> None:
        engine = RetrievalEngine(embedder, StubStore([]), retry_policy=NO_RETRY)

        assert await engine.hybrid_search([1.0], ["x"], top_k=0) == []
