"""Models package — Pydantic schemas and SQLAlchemy ORM for the BEACON core."""

from beacon.models.orm import EMBEDDING_DIMENSION, ChunkRecord, DocumentRecord
from beacon.models.schemas import (
    AnswerResult,
    AssistantResponse,
    Chunk,
    Complexity,
    ConversationMessage,
    Document,
    DocumentSummary,
    LearningMode,
    ModelTier,
    RetrievedContext,
    SearchAnalytics,
    SearchType,
    SourceReference,
    Urgency,
    Usage,
    UserLevel,
    WebResult,
)

__all__ = [
    # Pydantic schemas (pipeline)
    "AnswerResult",
    "AssistantResponse",
    "Chunk",
    "ConversationMessage",
    "Document",
    "DocumentSummary",
    "RetrievedContext",
    "SearchAnalytics",
    "SourceReference",
    "Usage",
    "WebResult",
    # Enumerations
    "Complexity",
    "LearningMode",
    "ModelTier",
    "SearchType",
    "Urgency",
    "UserLevel",
    # SQLAlchemy ORM (persistence layer)
    "ChunkRecord",
    "DocumentRecord",
    "EMBEDDING_DIMENSION",
]
