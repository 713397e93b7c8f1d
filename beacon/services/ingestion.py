"""
Ingestion Pipeline

Document → Chunks → Embeddings → Vector store.

Design:
    - Chunks are embedded one at a time with a small fixed delay between
      calls to respect the provider's rate limit (throttling only).
    - Each embedding call follows the long ingestion retry policy.
    - Nothing is written until every chunk is embedded. The document row
      is then saved and its vectors upserted in one batch, so an embedding
      failure leaves the previous version (if any) untouched.
    - Re-ingesting a document id replaces its previous row and vectors.
    - A document that is being deleted cannot be (re)ingested.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from beacon.core.exceptions import InvariantError
from beacon.core.retry import INGESTION_RETRY, RetryPolicy, with_retry
from beacon.models.schemas import Document, DocumentSummary
from beacon.repositories.documents import DocumentStore
from beacon.services.chunking import TextChunker
from beacon.services.embeddings import EmbeddingClient
from beacon.services.vector_store import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_EMBED_DELAY: float = 0.1


@dataclass(frozen=True)
class IngestResult:
    """Outcome of a successful ingestion."""

    document_id: uuid.UUID
    chunks_count: int
    processing_time_ms: int = 0


class IngestionPipeline:
    """
    Chunks, embeds and indexes documents.

    Usage::

        pipeline = IngestionPipeline(embedder, store, documents, TextChunker())
        result = await pipeline.ingest_document(
            Document(title="React Hooks Tutorial", content=text)
        )
        print(result.chunks_count)

    Args:
        embedder: Embedding client for chunk texts.
        vector_store: Destination for chunk vectors.
        documents: Store for the raw document rows.
        chunker: Text chunker (window size and overlap).
        retry_policy: Retry schedule for each embedding call.
        embed_delay: Seconds to wait between consecutive embedding calls.
        sleep: Injected sleep coroutine (tests pass a recorder).
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_store: VectorStore,
        documents: DocumentStore,
        chunker: TextChunker | None = None,
        retry_policy: RetryPolicy = INGESTION_RETRY,
        embed_delay: float = DEFAULT_EMBED_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._embedder = embedder
        self._store = vector_store
        self._documents = documents
        self._chunker = chunker or TextChunker()
        self._retry_policy = retry_policy
        self._embed_delay = embed_delay
        self._sleep = sleep
        self._deleting: set[uuid.UUID] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_document(self, document: Document) -> IngestResult:
        """
        Chunk and embed a document, then save and index it.

        Args:
            document: Document to ingest (new, or a full replacement).

        Returns:
            IngestResult with the number of indexed chunks.

        Raises:
            InvariantError: If the document is being deleted, or the
                vector store rejects the batch.
            EmbeddingServiceError: If embedding still fails after retries.
        """
        self._ensure_not_deleting(document.id)
        start = time.perf_counter()
        logger.info("Processing document: %s", document.title)

        # Nothing is written until every chunk has a vector
        chunks = self._chunker.split(document)
        vectors: list[list[float]] = []
        for i, chunk in enumerate(chunks):
            if i > 0 and self._embed_delay > 0:
                await self._sleep(self._embed_delay)
            logger.debug("Embedding chunk %d/%d", i + 1, len(chunks))
            vectors.append(await self._embed(chunk.text))

        # Deletion may have started while we were embedding
        self._ensure_not_deleting(document.id)
        await self._documents.save(document)
        # Replace-and-rechunk: drop vectors from any previous version
        await self._store.delete_by_document(document.id)
        await self._store.upsert(
            document.id,
            chunks,
            vectors,
            {"title": document.title, "source": document.source},
        )
        await self._documents.record_chunk_count(document.id, len(chunks))

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Document '%s' indexed: %d chunks in %dms (id=%s)",
            document.title,
            len(chunks),
            elapsed_ms,
            document.id,
        )
        return IngestResult(
            document_id=document.id,
            chunks_count=len(chunks),
            processing_time_ms=elapsed_ms,
        )

    async def delete_document(self, document_id: uuid.UUID) -> int:
        """
        Delete a document's vectors, then the document itself.

        Returns:
            Number of vectors removed (0 if the document had none).
        """
        self._deleting.add(document_id)
        try:
            deleted = await self._store.delete_by_document(document_id)
            await self._documents.delete(document_id)
        finally:
            self._deleting.discard(document_id)

        logger.info("Deleted document %s (%d vectors)", document_id, deleted)
        return deleted

    async def get_document(self, document_id: uuid.UUID) -> Document | None:
        return await self._documents.get(document_id)

    async def list_documents(self) -> list[DocumentSummary]:
        """All ingested documents with chunk counts, newest first."""
        return await self._documents.list()

    def is_deleting(self, document_id: uuid.UUID) -> bool:
        return document_id in self._deleting

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_not_deleting(self, document_id: uuid.UUID) -> None:
        if document_id in self._deleting:
            raise InvariantError(f"document {document_id} is being deleted")

    async def _embed(self, text: str) -> list[float]:
        return await with_retry(
            lambda: self._embedder.embed(text),
            "chunk embedding",
            policy=self._retry_policy,
            sleep=self._sleep,
        )
