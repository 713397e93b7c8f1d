"""
RAG API Router

HTTP endpoints for the BEACON assistant core. Thin plumbing: every
decision lives in the service layer.

Endpoints:
    POST   /documents        — Submit a document for async ingestion (202).
    GET    /documents        — List ingested documents with chunk counts.
    DELETE /documents/{id}   — Delete a document and its vectors.
    POST   /search           — Semantic search (keyword-boosted if asked).
    POST   /ask              — Retrieve and answer, JSON result.
    POST   /ask/stream       — Retrieve and answer, streamed text.
    POST   /assistant        — Learning assistant, streamed text.
    GET    /recommendation   — Model choice for a query, no generation.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from beacon.core.exceptions import ServiceError
from beacon.models.schemas import (
    AnswerResult,
    Complexity,
    Document,
    LearningMode,
    RetrievedContext,
)
from beacon.schemas.rag import (
    AskRequest,
    AssistantRequest,
    DeleteResponse,
    DocumentOut,
    IngestRequest,
    IngestResponse,
    RecommendationOut,
    SearchRequest,
    SearchResult,
)
from beacon.services.assistant import AssistantOptions, RAGOptions
from beacon.services.factory import Services
from beacon.services.ingestion import IngestionPipeline
from beacon.services.streaming import ResponseStream

logger = logging.getLogger(__name__)

router = APIRouter()

STREAM_HEADERS = {"Cache-Control": "no-cache"}
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_ERROR_MARKER = "[stream error]"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_services(request: Request) -> Services:
    """FastAPI dependency — the service graph built at startup."""
    return request.app.state.services


# ---------------------------------------------------------------------------
# Background task / streaming helpers
# ---------------------------------------------------------------------------


async def _run_ingest(pipeline: IngestionPipeline, document: Document) -> None:
    """
    Background task that runs the ingestion pipeline.

    Runs after the HTTP response is sent, so failures can only be
    reported to the operator log.
    """
    try:
        result = await pipeline.ingest_document(document)
        logger.info(
            "Ingestion complete: '%s' → %d chunks in %dms",
            document.title,
            result.chunks_count,
            result.processing_time_ms,
        )
    except Exception:
        logger.exception("Ingestion failed for '%s' (%s)", document.title, document.id)


async def _encode(stream: ResponseStream) -> AsyncIterator[bytes]:
    # Headers are already sent; a failure ends the body with an error line
    try:
        async for token in stream:
            yield token.encode("utf-8")
    except ServiceError as e:
        logger.error("Answer stream failed after partial output: %s", e)
        yield f"\n\n{STREAM_ERROR_MARKER} {e}\n".encode()
    finally:
        await stream.aclose()


async def _streaming_response(stream: ResponseStream) -> StreamingResponse:
    """
    Wrap a stream in a ``StreamingResponse`` once its provider has answered.

    A provider that fails before its first event raises here, so the
    ``ServiceError`` handler still turns it into a 503.
    """
    await stream.start()
    return StreamingResponse(
        _encode(stream),
        media_type=STREAM_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )


def _context_to_result(ctx: RetrievedContext) -> SearchResult:
    return SearchResult(
        chunk_id=ctx.chunk_id,
        content=ctx.text,
        score=ctx.similarity,
        source=ctx.document_title,
        document_id=ctx.document_id,
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=IngestResponse,
    status_code=202,
    summary="Submit a document for ingestion",
)
async def ingest_document(
    request: IngestRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> IngestResponse:
    """
    Accept a document and chunk, embed and index it in the background.

    Returns 202 immediately with the identifier the document will have.
    """
    document = Document(
        title=request.title,
        content=request.content,
        source=request.source,
    )
    background_tasks.add_task(_run_ingest, services.ingestion, document)
    return IngestResponse(
        document_id=document.id,
        status="processing",
        message=f"'{document.title}' accepted for processing.",
    )


@router.get(
    "/documents",
    response_model=list[DocumentOut],
    summary="List ingested documents",
)
async def list_documents(
    services: Services = Depends(get_services),
) -> list[DocumentOut]:
    summaries = await services.ingestion.list_documents()
    return [DocumentOut.model_validate(s.model_dump()) for s in summaries]


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document and its chunks",
    responses={404: {"description": "Unknown document"}},
)
async def delete_document(
    document_id: UUID,
    services: Services = Depends(get_services),
) -> DeleteResponse:
    if await services.ingestion.get_document(document_id) is None:
        raise HTTPException(status_code=404, detail="Document not found")
    deleted = await services.ingestion.delete_document(document_id)
    return DeleteResponse(document_id=document_id, chunks_deleted=deleted)


# ---------------------------------------------------------------------------
# Retrieval & answers
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=list[SearchResult],
    summary="Semantic search across documents",
)
async def search(
    request: SearchRequest,
    services: Services = Depends(get_services),
) -> list[SearchResult]:
    """
    Search indexed chunks by semantic similarity.

    With ``keywords``, candidates are re-ranked by keyword hits (hybrid
    search) and scores may exceed 1.
    """
    if not request.keywords:
        contexts = await services.retriever.find_relevant_chunks(
            request.query, request.k, request.document_id
        )
        return [_context_to_result(ctx) for ctx in contexts]

    embedding = await services.retriever.embed_query(request.query)
    filter = {"document_id": str(request.document_id)} if request.document_id else None
    matches = await services.retriever.hybrid_search(
        embedding, request.keywords, request.k, filter=filter
    )
    return [
        SearchResult(
            chunk_id=match.id,
            content=str(match.metadata.get("text", "")),
            score=match.score,
            source=str(match.metadata.get("title") or "Unknown"),
            chunk_index=match.metadata.get("chunk_index"),
            document_id=match.metadata.get("document_id"),
        )
        for match in matches
    ]


@router.post(
    "/ask",
    response_model=AnswerResult,
    summary="Answer a question from the knowledge base",
)
async def ask(
    request: AskRequest,
    services: Services = Depends(get_services),
) -> AnswerResult:
    logger.info("RAG /ask request: query='%s', k=%d", request.query[:50], request.k)
    return await services.assistant.ask_question(
        request.query, request.k, request.document_id
    )


@router.post(
    "/ask/stream",
    summary="Answer a question from the knowledge base (streamed)",
    response_class=StreamingResponse,
)
async def ask_stream(
    request: AskRequest,
    services: Services = Depends(get_services),
) -> StreamingResponse:
    stream = await services.assistant.stream_question(
        request.query, request.k, request.document_id
    )
    return await _streaming_response(stream)


@router.post(
    "/assistant",
    summary="Learning assistant (streamed)",
    response_class=StreamingResponse,
)
async def assistant(
    request: AssistantRequest,
    services: Services = Depends(get_services),
) -> StreamingResponse:
    """
    Stream an answer from the learning assistant.

    ``use_knowledge_base`` answers from retrieved chunks (RAG prompt, light
    model); otherwise the query is classified, optionally augmented with
    web results and routed to the matching model tier.
    """
    if request.use_knowledge_base:
        contexts = await services.retriever.find_relevant_chunks(
            request.query, request.k
        )
        stream = await services.assistant.ask_rag_assistant(
            request.query,
            contexts,
            RAGOptions(
                user_level=request.user_level,
                auto_detect_level=request.auto_detect_level,
            ),
        )
    else:
        options = AssistantOptions.model_validate(
            request.model_dump(
                include=set(AssistantOptions.model_fields),
                exclude_none=True,
            )
        )
        stream = await services.assistant.ask_ai_assistant(
            request.query, request.history, options
        )
    return await _streaming_response(stream)


@router.get(
    "/recommendation",
    response_model=RecommendationOut,
    summary="Model recommendation for a query",
)
async def recommendation(
    query: str,
    mode: LearningMode | None = None,
    complexity: Complexity | None = None,
    services: Services = Depends(get_services),
) -> RecommendationOut:
    rec = services.assistant.get_model_recommendation(query, mode, complexity)
    return RecommendationOut(
        learning_mode=rec.learning_mode,
        complexity=rec.complexity,
        tier=rec.tier,
        model=rec.model,
        temperature=rec.temperature,
        reasoning=rec.reasoning,
    )
