"""
RAG API Schemas

Pydantic models for the BEACON endpoint request/response cycle.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from beacon.models.schemas import (
    Complexity,
    ConversationMessage,
    LearningMode,
    ModelTier,
    SearchType,
    Urgency,
    UserLevel,
)
from beacon.services.assistant import WebSource


class IngestRequest(BaseModel):
    """Request body for document ingestion."""

    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1, description="Raw text content")
    source: str | None = Field(default=None, description="URL, slug or file name")


class IngestResponse(BaseModel):
    """Response for the ingestion endpoint."""

    document_id: UUID = Field(description="Identifier assigned to the document")
    status: str = Field(description="Processing status: 'processing'")
    message: str = Field(description="Human-readable status message")


class DocumentOut(BaseModel):
    """Listing entry of an ingested document."""

    id: UUID
    title: str
    source: str | None = None
    created_at: datetime
    chunk_count: int = Field(description="Number of indexed chunks")


class DeleteResponse(BaseModel):
    document_id: UUID
    chunks_deleted: int


class SearchRequest(BaseModel):
    """Request body for semantic (optionally keyword-boosted) search."""

    query: str = Field(
        ...,
        min_length=1,
        description="Natural language search query",
    )
    k: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of results to return",
    )
    document_id: UUID | None = Field(
        default=None,
        description="Restrict the search to one document",
    )
    keywords: list[str] = Field(
        default_factory=list,
        description="Boost results whose text contains these terms",
    )


class SearchResult(BaseModel):
    """Single search result returned to the client."""

    chunk_id: str = Field(description="Chunk identifier")
    content: str = Field(description="Chunk text content")
    score: float = Field(description="Relevance score (higher = more relevant)")
    source: str = Field(description="Source document title")
    chunk_index: int | None = Field(
        default=None,
        description="Position within source document (0-based)",
    )
    document_id: str | None = Field(description="Parent document identifier")


class AskRequest(BaseModel):
    """Request body for question answering over the indexed documents."""

    query: str = Field(
        ...,
        min_length=1,
        description="Natural language question to answer",
    )
    k: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of context chunks to retrieve",
    )
    document_id: UUID | None = None


class AssistantRequest(BaseModel):
    """Request body for the learning assistant (streamed answer)."""

    query: str = Field(..., min_length=1)
    history: list[ConversationMessage] = Field(default_factory=list)
    learning_mode: LearningMode | None = None
    complexity: Complexity | None = None
    force_model: ModelTier | None = None
    enable_search: bool | None = None
    search_type: SearchType | None = None
    search_count: int = Field(default=8, ge=1, le=20)
    web_search_results: list[WebSource] | None = None
    urgency: Urgency | None = None
    include_reasoning: bool = False
    use_knowledge_base: bool = Field(
        default=False,
        description="Answer from retrieved chunks instead of the web",
    )
    k: int = Field(default=5, ge=1, le=20)
    user_level: UserLevel | None = None
    auto_detect_level: bool = True


class RecommendationOut(BaseModel):
    learning_mode: LearningMode
    complexity: Complexity
    tier: ModelTier
    model: str
    temperature: float
    reasoning: str
