"""
Retrieval Engine

Embeds a query, runs the nearest-neighbor lookup and returns ranked
context snippets. Also provides hybrid search: semantic candidates
reranked with a keyword-match boost.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any, Final

from beacon.core.retry import INTERACTIVE_RETRY, RetryPolicy, with_retry
from beacon.models.schemas import RetrievedContext
from beacon.services.embeddings import EmbeddingClient
from beacon.services.vector_store import VectorMatch, VectorStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K: Final[int] = 5
KEYWORD_BOOST: Final[float] = 0.1


def keyword_boost(text: str, keywords: Sequence[str]) -> float:
    """``KEYWORD_BOOST`` for every keyword found in ``text`` (case-insensitive)."""
    lowered = text.lower()
    hits = sum(1 for keyword in keywords if keyword and keyword.lower() in lowered)
    return hits * KEYWORD_BOOST


class RetrievalEngine:
    """
    Orchestrates query embedding and vector search.

    Usage::

        engine = RetrievalEngine(embedder, store)
        contexts = await engine.find_relevant_chunks("How does useState work?")
        for ctx in contexts:
            print(ctx.document_title, ctx.similarity)

    Args:
        embedder: Embedding client used for queries.
        store: Vector store holding the chunk vectors.
        retry_policy: Retry schedule for the query embedding call.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        retry_policy: RetryPolicy = INTERACTIVE_RETRY,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._retry_policy = retry_policy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed_query(self, query: str) -> list[float]:
        """Embed a query with the short interactive retry policy."""
        return await with_retry(
            lambda: self._embedder.embed(query),
            "query embedding",
            policy=self._retry_policy,
        )

    async def find_relevant_chunks(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        document_id: uuid.UUID | str | None = None,
    ) -> list[RetrievedContext]:
        """
        Rank stored chunks against ``query``.

        Args:
            query: Natural-language query.
            top_k: Maximum number of contexts to return.
            document_id: Restrict the search to one document.

        Returns:
            Contexts sorted by descending similarity, at most ``top_k``.
            An empty corpus (or document) yields ``[]``.

        Raises:
            EmbeddingServiceError: If the query cannot be embedded.
        """
        if top_k <= 0:
            return []

        query_embedding = await self.embed_query(query)
        filter = {"document_id": str(document_id)} if document_id else None
        matches = await self._store.query(query_embedding, top_k, filter=filter)

        contexts = [self._to_context(match) for match in matches]
        contexts.sort(key=lambda ctx: ctx.similarity, reverse=True)
        contexts = contexts[:top_k]

        logger.info(
            "Retrieved %d chunks for query (top_k=%d, scope=%s): %s",
            len(contexts),
            top_k,
            document_id or "all",
            ", ".join(f"{ctx.similarity:.3f}" for ctx in contexts),
        )
        return contexts

    async def hybrid_search(
        self,
        query_embedding: Sequence[float],
        keywords: Sequence[str],
        top_k: int = DEFAULT_TOP_K,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """
        Semantic search reranked by keyword hits.

        Fetches ``2 * top_k`` semantic candidates, adds ``KEYWORD_BOOST``
        per keyword found in each candidate's text, re-sorts (stable) and
        truncates to ``top_k``. Eligibility never changes, only order.
        """
        if top_k <= 0:
            return []

        candidates = await self._store.query(query_embedding, top_k * 2, filter=filter)

        boosted = [
            match._replace(
                score=match.score
                + keyword_boost(str(match.metadata.get("text", "")), keywords)
            )
            for match in candidates
        ]
        # sorted() is stable: equal scores keep the store's order
        boosted = sorted(boosted, key=lambda match: match.score, reverse=True)
        return boosted[:top_k]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_context(match: VectorMatch) -> RetrievedContext:
        metadata = match.metadata
        return RetrievedContext(
            chunk_id=match.id,
            document_id=metadata.get("document_id"),
            document_title=metadata.get("title") or "Unknown",
            text=str(metadata.get("text", "")),
            similarity=match.score,
        )
