"""
Vector Store Adapters

Persist and query chunk vectors with metadata.

Implementations of the ``VectorStore`` protocol:
    - InMemoryVectorStore: numpy cosine scan over process memory. Default
      backend for local runs and tests.
    - PgVectorStore: PostgreSQL + pgvector through ``RAGRepository``.

Guarantees shared by both:
    - ``upsert`` rejects ``len(chunks) != len(vectors)`` before any write.
    - Every vector in one index has the same dimension.
    - ``delete_by_document`` is idempotent (second call returns 0).
    - ``query`` returns at most ``top_k`` matches, best first, ties broken
      by insertion order.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from itertools import count
from typing import Any, Final, NamedTuple, Protocol, runtime_checkable

import numpy as np
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from beacon.core.exceptions import InvariantError, VectorStoreError
from beacon.models.orm import ChunkRecord
from beacon.models.schemas import Chunk
from beacon.repositories.rag import RAGRepository
from beacon.services.similarity import cosine_similarity

logger = logging.getLogger(__name__)

CONTENT_TYPE: Final[str] = "text"
SOURCE_TYPE: Final[str] = "document"


class VectorMatch(NamedTuple):
    """One nearest-neighbor hit."""

    id: str
    score: float
    metadata: dict[str, Any]


@runtime_checkable
class VectorStore(Protocol):
    async def upsert(
        self,
        document_id: uuid.UUID | str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
        extra_metadata: Mapping[str, Any] | None = None,
    ) -> None: ...

    async def delete_by_document(self, document_id: uuid.UUID | str) -> int: ...

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]: ...


def build_record_metadata(
    document_id: uuid.UUID | str,
    chunk: Chunk,
    extra_metadata: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Metadata stored alongside a chunk vector."""
    metadata: dict[str, Any] = {
        "text": chunk.text,
        "document_id": str(document_id),
        "chunk_index": chunk.index,
        "timestamp": datetime.now(UTC).isoformat(),
        "content_type": CONTENT_TYPE,
        "source_type": SOURCE_TYPE,
    }
    metadata.update(chunk.metadata)
    if extra_metadata:
        metadata.update(extra_metadata)
    return metadata


def _check_batch(
    chunks: Sequence[Chunk],
    vectors: Sequence[Sequence[float]],
    dimension: int | None,
) -> int | None:
    """
    Validate a batch before writing; returns the batch dimension.

    Raises:
        InvariantError: On count or dimension mismatch.
    """
    if len(chunks) != len(vectors):
        raise InvariantError(
            f"chunk/vector count mismatch: {len(chunks)} chunks, {len(vectors)} vectors"
        )

    batch_dimension = dimension
    for vector in vectors:
        if batch_dimension is None:
            batch_dimension = len(vector)
        if len(vector) != batch_dimension:
            raise InvariantError(
                f"vector dimension {len(vector)} does not match index dimension "
                f"{batch_dimension}"
            )
    return batch_dimension


def _filter_value(value: Any) -> Any:
    # document_id is stored as a string
    return str(value) if isinstance(value, uuid.UUID) else value


def _matches(metadata: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    if not filter:
        return True
    return all(
        metadata.get(key) == _filter_value(value) for key, value in filter.items()
    )


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


@dataclass
class _Record:
    vector: np.ndarray
    metadata: dict[str, Any]
    seq: int


class InMemoryVectorStore:
    """
    Vector store held in process memory, scored by a numpy cosine scan.

    The dimension is fixed by the constructor, or by the first upsert
    when not given.

    Usage::

        store = InMemoryVectorStore(dimension=1536)
        await store.upsert(doc.id, chunks, vectors, {"title": doc.title})
        matches = await store.query(query_vector, top_k=5)
    """

    def __init__(self, dimension: int | None = None) -> None:
        self._dimension = dimension
        self._records: dict[str, _Record] = {}
        self._seq = count()

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def __len__(self) -> int:
        return len(self._records)

    async def upsert(
        self,
        document_id: uuid.UUID | str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
        extra_metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Insert or replace one record per chunk.

        Raises:
            InvariantError: On count or dimension mismatch (nothing written).
        """
        self._dimension = _check_batch(chunks, vectors, self._dimension)

        for chunk, vector in zip(chunks, vectors, strict=True):
            key = str(chunk.id)
            existing = self._records.get(key)
            self._records[key] = _Record(
                vector=np.asarray(vector, dtype=np.float32),
                metadata=build_record_metadata(document_id, chunk, extra_metadata),
                # Replacing a record keeps its original position
                seq=existing.seq if existing else next(self._seq),
            )

        logger.debug("Upserted %d vectors for document %s", len(chunks), document_id)

    async def delete_by_document(self, document_id: uuid.UUID | str) -> int:
        """Remove every record tagged with ``document_id``; returns the count."""
        target = str(document_id)
        doomed = [
            key
            for key, record in self._records.items()
            if record.metadata.get("document_id") == target
        ]
        for key in doomed:
            del self._records[key]

        logger.info("Deleted %d vectors for document %s", len(doomed), target)
        return len(doomed)

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Cosine nearest neighbors, best first, at most ``top_k``."""
        if top_k <= 0:
            return []

        candidates = [
            (key, record)
            for key, record in self._records.items()
            if _matches(record.metadata, filter)
        ]
        if not candidates:
            return []

        query_vector = np.asarray(vector, dtype=np.float32)
        if self._dimension is not None and query_vector.shape[0] != self._dimension:
            raise InvariantError(
                f"query dimension {query_vector.shape[0]} does not match index "
                f"dimension {self._dimension}"
            )

        scores = [
            cosine_similarity(record.vector, query_vector) for _, record in candidates
        ]

        ranked = sorted(
            zip(candidates, scores, strict=True),
            key=lambda item: (-item[1], item[0][1].seq),
        )

        return [
            VectorMatch(id=key, score=float(score), metadata=dict(record.metadata))
            for (key, record), score in ranked[:top_k]
        ]


# ---------------------------------------------------------------------------
# pgvector backend
# ---------------------------------------------------------------------------


class PgVectorStore:
    """
    Vector store over PostgreSQL + pgvector.

    Each call opens its own session from ``session_factory`` and commits
    before returning. Parent document rows must exist before chunks are
    upserted (foreign key).

    Args:
        session_factory: Async session maker bound to the database engine.
        dimension: Fixed vector dimension of the ``chunks.embedding`` column.
        repository: Data access layer (injected for testing).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dimension: int,
        repository: RAGRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dimension = dimension
        self._repository = repository or RAGRepository()

    @property
    def dimension(self) -> int:
        return self._dimension

    async def upsert(
        self,
        document_id: uuid.UUID | str,
        chunks: Sequence[Chunk],
        vectors: Sequence[Sequence[float]],
        extra_metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Merge one chunk row per chunk in a single transaction.

        Raises:
            InvariantError: On count or dimension mismatch (nothing written).
            VectorStoreError: If the database rejects the batch.
        """
        _check_batch(chunks, vectors, self._dimension)

        records = [
            ChunkRecord(
                id=chunk.id,
                document_id=uuid.UUID(str(document_id)),
                chunk_index=chunk.index,
                content=chunk.text,
                embedding=list(vector),
                chunk_metadata=build_record_metadata(
                    document_id, chunk, extra_metadata
                ),
            )
            for chunk, vector in zip(chunks, vectors, strict=True)
        ]

        try:
            async with self._session_factory() as session:
                await self._repository.upsert_chunks(session, records)
                await session.commit()
        except SQLAlchemyError as e:
            raise VectorStoreError(f"upsert failed: {e}") from e

        logger.debug("Upserted %d vectors for document %s", len(records), document_id)

    async def delete_by_document(self, document_id: uuid.UUID | str) -> int:
        """Delete every chunk row of ``document_id``; returns the count."""
        try:
            async with self._session_factory() as session:
                deleted = await self._repository.delete_chunks_by_document(
                    session, uuid.UUID(str(document_id))
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise VectorStoreError(f"delete failed: {e}") from e

        logger.info("Deleted %d vectors for document %s", deleted, document_id)
        return deleted

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Mapping[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Cosine nearest neighbors via pgvector, best first, at most ``top_k``."""
        if top_k <= 0:
            return []
        if len(vector) != self._dimension:
            raise InvariantError(
                f"query dimension {len(vector)} does not match index dimension "
                f"{self._dimension}"
            )

        try:
            async with self._session_factory() as session:
                rows = await self._repository.search_similar(
                    session,
                    list(vector),
                    limit=top_k,
                    filters=filter,
                )
        except SQLAlchemyError as e:
            raise VectorStoreError(f"query failed: {e}") from e

        return [
            VectorMatch(
                id=str(record.id),
                score=score,
                metadata={
                    **record.chunk_metadata,
                    "text": record.content,
                    "document_id": str(record.document_id),
                    "chunk_index": record.chunk_index,
                },
            )
            for record, score in rows
        ]
