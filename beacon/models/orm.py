"""
BEACON Database Models

SQLAlchemy 2.0 ORM models for the pgvector storage backend.

Tables:
    documents — Ingested source documents.
    chunks    — Document segments with their embedding vector and metadata.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from beacon.core.config import settings
from beacon.models.base import Base

# Fixed per deployment; every vector in the index shares it
EMBEDDING_DIMENSION: int = settings.EMBEDDING_DIMENSION


class DocumentRecord(Base):
    """
    Persistent storage for source documents.

    Attributes:
        id: UUID primary key (generated Python-side).
        title: Document title.
        content: Full raw text.
        source: Optional origin (URL, slug).
        created_at: Insertion timestamp.
        chunks: Related ChunkRecord instances (cascade delete).
    """

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # Chunks are deleted with their document
    chunks: Mapped[list[ChunkRecord]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="ChunkRecord.chunk_index",
    )

    def __repr__(self) -> str:
        return f"<DocumentRecord(id={self.id!s:.8}, title='{self.title}')>"


class ChunkRecord(Base):
    """
    Persistent storage for chunk vectors.

    Attributes:
        id: UUID primary key (the chunk id assigned by the chunker).
        document_id: Foreign key to parent document (CASCADE delete).
        chunk_index: Zero-based position within the parent document.
        content: Chunk text.
        embedding: Vector of EMBEDDING_DIMENSION floats.
        chunk_metadata: JSONB record metadata (title, timestamp, preview...).
        created_at: Insertion time, used to break score ties.
    """

    __tablename__ = "chunks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[list[float]] = mapped_column(
        Vector(EMBEDDING_DIMENSION),
        nullable=False,
    )
    chunk_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    document: Mapped[DocumentRecord] = relationship(back_populates="chunks")

    def __repr__(self) -> str:
        return (
            f"<ChunkRecord(id={self.id!s:.8}, "
            f"doc={self.document_id!s:.8}, idx={self.chunk_index})>"
        )
