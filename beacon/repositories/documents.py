"""
Document Store

Read/write access to raw source documents, consumed by the ingestion
pipeline. Chunk vectors live in the vector store; this layer only keeps
the document rows and their chunk counts.
"""

from __future__ import annotations

import logging
import uuid
from typing import Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from beacon.core.exceptions import VectorStoreError
from beacon.models.orm import DocumentRecord
from beacon.models.schemas import Document, DocumentSummary
from beacon.repositories.rag import RAGRepository

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentStore(Protocol):
    async def save(self, document: Document) -> None: ...

    async def get(self, document_id: uuid.UUID) -> Document | None: ...

    async def list(self) -> list[DocumentSummary]: ...

    async def delete(self, document_id: uuid.UUID) -> bool: ...

    async def record_chunk_count(self, document_id: uuid.UUID, count: int) -> None: ...


class InMemoryDocumentStore:
    """Document store held in process memory (pairs with InMemoryVectorStore)."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, Document] = {}
        self._chunk_counts: dict[uuid.UUID, int] = {}

    async def save(self, document: Document) -> None:
        self._documents[document.id] = document
        self._chunk_counts.setdefault(document.id, 0)

    async def get(self, document_id: uuid.UUID) -> Document | None:
        return self._documents.get(document_id)

    async def list(self) -> list[DocumentSummary]:
        documents = sorted(
            self._documents.values(), key=lambda d: d.created_at, reverse=True
        )
        return [
            DocumentSummary(
                id=doc.id,
                title=doc.title,
                source=doc.source,
                created_at=doc.created_at,
                chunk_count=self._chunk_counts.get(doc.id, 0),
            )
            for doc in documents
        ]

    async def delete(self, document_id: uuid.UUID) -> bool:
        self._chunk_counts.pop(document_id, None)
        return self._documents.pop(document_id, None) is not None

    async def record_chunk_count(self, document_id: uuid.UUID, count: int) -> None:
        if document_id in self._documents:
            self._chunk_counts[document_id] = count


class SqlDocumentStore:
    """
    Document store over PostgreSQL via ``RAGRepository``.

    Each call runs in its own session and commits before returning.
    Chunk counts are derived from the ``chunks`` table at read time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: RAGRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository or RAGRepository()

    async def save(self, document: Document) -> None:
        record = DocumentRecord(
            id=document.id,
            title=document.title,
            content=document.content,
            source=document.source,
            created_at=document.created_at,
        )
        try:
            async with self._session_factory() as session:
                await self._repository.save_document(session, record)
                await session.commit()
        except SQLAlchemyError as e:
            raise VectorStoreError(f"saving document failed: {e}") from e

    async def get(self, document_id: uuid.UUID) -> Document | None:
        async with self._session_factory() as session:
            record = await self._repository.get_document_by_id(session, document_id)
        if record is None:
            return None
        return Document(
            id=record.id,
            title=record.title,
            content=record.content,
            source=record.source,
            created_at=record.created_at,
        )

    async def list(self) -> list[DocumentSummary]:
        async with self._session_factory() as session:
            rows = await self._repository.list_documents(session)
        return [
            DocumentSummary(
                id=record.id,
                title=record.title,
                source=record.source,
                created_at=record.created_at,
                chunk_count=chunk_count,
            )
            for record, chunk_count in rows
        ]

    async def delete(self, document_id: uuid.UUID) -> bool:
        try:
            async with self._session_factory() as session:
                deleted = await self._repository.delete_document(session, document_id)
                await session.commit()
        except SQLAlchemyError as e:
            raise VectorStoreError(f"deleting document failed: {e}") from e
        return deleted

    async def record_chunk_count(self, document_id: uuid.UUID, count: int) -> None:
        # Derived from the chunks table on read
        logger.debug("Document %s now has %d chunks", document_id, count)
