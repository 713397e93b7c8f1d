"""
RAG Repository

Data access layer for the pgvector storage backend. Persists documents
and chunk vectors and runs cosine-distance nearest-neighbor queries.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from beacon.models.orm import ChunkRecord, DocumentRecord

logger = logging.getLogger(__name__)


class RAGRepository:
    """
    Repository for document and chunk persistence with vector search.

    All methods expect an externally managed ``AsyncSession``; callers
    own the transaction boundary (commit / rollback).

    Key guarantees:
        - ``upsert_chunks``: every record is merged in the caller's
          transaction, so a batch lands entirely or not at all.
        - ``search_similar``: results ordered by cosine similarity
          (highest first), ties broken by insertion time.
    """

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def save_document(
        self,
        session: AsyncSession,
        document: DocumentRecord,
    ) -> DocumentRecord:
        """Insert or replace a document row (chunks untouched)."""
        merged = await session.merge(document)
        await session.flush()
        logger.info("Saved document '%s' (%s)", merged.title, merged.id)
        return merged

    async def get_document_by_id(
        self,
        session: AsyncSession,
        document_id: uuid.UUID,
    ) -> DocumentRecord | None:
        """Look up a document by its UUID."""
        stmt = select(DocumentRecord).where(DocumentRecord.id == document_id)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def list_documents(
        self,
        session: AsyncSession,
    ) -> list[tuple[DocumentRecord, int]]:
        """All documents with their chunk counts, newest first."""
        chunk_count = func.count(ChunkRecord.id).label("chunk_count")
        stmt = (
            select(DocumentRecord, chunk_count)
            .outerjoin(ChunkRecord, ChunkRecord.document_id == DocumentRecord.id)
            .group_by(DocumentRecord.id)
            .order_by(DocumentRecord.created_at.desc())
        )
        result = await session.execute(stmt)
        return [(row[0], int(row[1])) for row in result.all()]

    async def delete_document(
        self,
        session: AsyncSession,
        document_id: uuid.UUID,
    ) -> bool:
        """Delete a document; its chunks go with it (ON DELETE CASCADE)."""
        stmt = delete(DocumentRecord).where(DocumentRecord.id == document_id)
        result = await session.execute(stmt)
        return bool(result.rowcount)

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    async def upsert_chunks(
        self,
        session: AsyncSession,
        chunks: Sequence[ChunkRecord],
    ) -> None:
        """Insert or replace chunk rows keyed by chunk id."""
        for chunk in chunks:
            await session.merge(chunk)
        await session.flush()

    async def delete_chunks_by_document(
        self,
        session: AsyncSession,
        document_id: uuid.UUID,
    ) -> int:
        """Delete every chunk of a document; returns the deleted count."""
        stmt = delete(ChunkRecord).where(ChunkRecord.document_id == document_id)
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    async def count_chunks(
        self,
        session: AsyncSession,
        document_id: uuid.UUID,
    ) -> int:
        stmt = select(func.count(ChunkRecord.id)).where(
            ChunkRecord.document_id == document_id
        )
        result = await session.execute(stmt)
        return int(result.scalar_one())

    async def search_similar(
        self,
        session: AsyncSession,
        query_embedding: list[float],
        limit: int = 5,
        filters: Mapping[str, Any] | None = None,
    ) -> list[tuple[ChunkRecord, float]]:
        """
        Search chunks by cosine similarity against a query vector.

        The cosine distance is converted to a similarity score:
        ``score = 1 - distance`` (range: [-1, 1], higher = more similar).

        Args:
            session: Active async database session.
            query_embedding: Query vector (same dimension as the index).
            limit: Maximum number of results to return.
            filters: Metadata equality filters. ``document_id`` is matched
                against the indexed column, anything else against the
                JSONB metadata.

        Returns:
            List of (ChunkRecord, similarity_score) tuples,
            ordered by similarity (highest first).
        """
        distance = ChunkRecord.embedding.cosine_distance(query_embedding).label(
            "distance"
        )

        stmt = select(ChunkRecord, distance)
        for key, value in (filters or {}).items():
            if key == "document_id":
                stmt = stmt.where(ChunkRecord.document_id == uuid.UUID(str(value)))
            else:
                stmt = stmt.where(ChunkRecord.chunk_metadata.contains({key: value}))

        stmt = stmt.order_by(distance, ChunkRecord.created_at).limit(limit)
        result = await session.execute(stmt)
        rows = result.all()

        return [(row[0], 1.0 - float(row[1])) for row in rows]
