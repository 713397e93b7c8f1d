"""
BEACON Domain Schemas

Pydantic models for the RAG assistant core. These are the data structures
that flow between the chunker, vector store, retrieval engine, web search
augmenter and answer synthesizer. None of the query-time models are
persisted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class LearningMode(StrEnum):
    """User-intent category that drives prompt and model choice."""

    DEBUG_CODE = "debug-code"
    SYSTEM_DESIGN = "system-design"
    ANALYZE_ALGORITHM = "analyze-algorithm"
    CREATE_TUTORIAL = "create-tutorial"
    CODE_REVIEW = "code-review"
    CAREER_ADVICE = "career-advice"
    ANALYSE_CODE = "analyse-code"
    # Never detected from keywords; only reachable through an explicit override
    EXPLAIN_OR_DESIGN_ALGORITHM = "explain-or-design-algorithm"
    DEFAULT = "default"


class Complexity(StrEnum):
    SIMPLE = "simple"
    COMPLEX = "complex"


class SearchType(StrEnum):
    GENERAL = "general"
    SOFTWARE = "software"
    RECENT = "recent"


class UserLevel(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Urgency(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ModelTier(StrEnum):
    """Light = fast and cheap, heavy = slower and more deliberate."""

    LIGHT = "light"
    HEAVY = "heavy"


# ---------------------------------------------------------------------------
# Documents & chunks
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """
    Source document owned by the ingestion pipeline.

    Immutable once chunked; an update is a full replace-and-rechunk.

    Attributes:
        id: Unique identifier (auto-generated UUID4).
        title: Human-readable title, shown as the context source.
        content: Raw text content.
        source: Optional origin (URL, slug, file name).
        created_at: UTC timestamp of creation.
    """

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1, description="Raw text content")
    source: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Chunk(BaseModel):
    """
    A bounded segment of a document for embedding and retrieval.

    Attributes:
        id: Unique chunk identifier.
        document_id: Reference to the parent Document.
        index: Zero-based position within the parent document.
        text: Chunk text (never empty).
        embedding: Vector, set once the chunk has been embedded.
        metadata: length, word_count and preview of the text.
    """

    id: UUID = Field(default_factory=uuid4)
    document_id: UUID
    index: int = Field(ge=0, description="Position in document (0-based)")
    text: str = Field(min_length=1)
    embedding: list[float] | None = None
    metadata: dict[str, str | int | float | bool | None] = Field(default_factory=dict)


class DocumentSummary(BaseModel):
    """Listing view of an ingested document."""

    id: UUID
    title: str
    source: str | None = None
    created_at: datetime
    chunk_count: int = 0


# ---------------------------------------------------------------------------
# Query-time results
# ---------------------------------------------------------------------------


class RetrievedContext(BaseModel):
    """
    A scored context snippet produced per query.

    ``similarity`` is the cosine score clamped into [0, 1]; anti-correlated
    vectors rank as 0 rather than negative.
    """

    chunk_id: str
    document_id: str | None = None
    document_title: str = "Unknown"
    text: str
    similarity: float = Field(ge=0.0, le=1.0)

    @field_validator("similarity", mode="before")
    @classmethod
    def clamp_similarity(cls, v: float) -> float:
        return min(max(float(v), 0.0), 1.0)


class WebResult(BaseModel):
    """A scored web or news search hit."""

    title: str
    url: str
    description: str
    date: str | None = None
    source: str
    type: Literal["web", "news"] = "web"
    relevance_score: float = Field(ge=0.0, le=1.0)
    is_technical: bool = False
    is_recent: bool = False
    snippet: str | None = None


class SearchAnalytics(BaseModel):
    """Per-search statistics reported next to the results."""

    query: str
    total_results: int
    web_results: int
    news_results: int
    processing_time_ms: int
    is_navigational: bool = False
    is_breaking_news: bool | None = None
    suggested_query: str | None = None


# ---------------------------------------------------------------------------
# Conversation & responses
# ---------------------------------------------------------------------------


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, input_tokens: int, output_tokens: int) -> Usage:
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )


class AssistantResponse(BaseModel):
    """
    Final result of a streamed or non-streamed generation.

    Attributes:
        content: Full answer text (all streamed tokens joined).
        usage: Token accounting reported by the provider.
        model: Concrete model identifier used for generation.
        processing_time_ms: Wall time from request to final token.
        confidence: Heuristic retrieval score in [0, 100], RAG answers only.
        sources: Retrieved contexts injected into the prompt.
        metadata: Every decision taken while answering (mode, model, search...).
    """

    content: str
    usage: Usage = Field(default_factory=Usage)
    model: str
    processing_time_ms: int = 0
    confidence: float | None = Field(default=None, ge=0.0, le=100.0)
    sources: list[RetrievedContext] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SourceReference(BaseModel):
    """Source entry of the non-streaming answer contract."""

    index: int
    document: str
    similarity: float
    content: str


class AnswerResult(BaseModel):
    """Non-streaming answer contract: ``{answer, sources, confidence}``."""

    answer: str
    sources: list[SourceReference] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=100.0)
