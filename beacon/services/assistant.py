"""
Answer Synthesizer

Turns a user query into a streamed, grounded answer.

Two entry points share the same plumbing (model selection, generation
request, ``ResponseStream``):

**Assistant** (``ask_ai_assistant``):
    query → intent (mode, complexity, search need) → optional web search →
    augmented query (web sources + mode/urgency/complexity directives) →
    model tier + temperature + mode prompt → streamed answer

**RAG** (``ask_rag_assistant`` / ``ask_question`` / ``stream_question``):
    query → retrieved chunks → ``<context>``-tagged prompt → light model,
    low temperature, context-only system prompt → answer + confidence

Confidence is the mean retrieval similarity scaled to [0, 100]. It is a
ranking heuristic, not a calibrated probability.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from typing import Any, Final

from pydantic import BaseModel, Field

from beacon.core.config import BeaconSettings
from beacon.core.exceptions import InputError, SearchServiceError
from beacon.models.schemas import (
    AnswerResult,
    Complexity,
    ConversationMessage,
    LearningMode,
    ModelTier,
    RetrievedContext,
    SearchAnalytics,
    SearchType,
    SourceReference,
    Urgency,
    UserLevel,
    WebResult,
)
from beacon.services.intent import IntentClassifier
from beacon.services.llm import GenerationClient, GenerationRequest
from beacon.services.model_selector import ModelRecommendation, ModelSelector
from beacon.services.prompts import (
    BASE_SYSTEM_PROMPT,
    QA_SYSTEM_PROMPT,
    RAG_SYSTEM_PROMPT,
)
from beacon.services.retrieval import DEFAULT_TOP_K, RetrievalEngine
from beacon.services.search import SearchOptions, WebSearchClient
from beacon.services.streaming import ResponseStream

logger = logging.getLogger(__name__)

NO_ANSWER: Final[str] = (
    "I couldn't find any relevant information to answer your question."
)

MAX_WEB_SOURCES: Final[int] = 6
WEB_CONTENT_LIMIT: Final[int] = 800
SOURCE_PREVIEW_LIMIT: Final[int] = 200

RAG_TEMPERATURE: Final[float] = 0.3
QA_TEMPERATURE: Final[float] = 0.7
QA_MAX_TOKENS: Final[int] = 1000

HIGH_URGENCY_DIRECTIVES: Final[dict[LearningMode, str]] = {
    LearningMode.DEBUG_CODE: (
        "Focus on immediate debugging steps and quick resolution paths."
    ),
    LearningMode.SYSTEM_DESIGN: (
        "Prioritize critical architectural decisions and MVP considerations."
    ),
}
DEFAULT_URGENCY_DIRECTIVE: Final[str] = (
    "Prioritize actionable solutions and key insights."
)


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class WebSource(BaseModel):
    """A web source injected into the augmented query."""

    title: str
    url: str
    description: str = ""
    content: str | None = None


class AssistantOptions(BaseModel):
    """
    Per-call knobs of ``ask_ai_assistant``.

    Every ``None`` means "decide from the query".
    """

    learning_mode: LearningMode | None = None
    complexity: Complexity | None = None
    force_model: ModelTier | None = None
    enable_search: bool | None = None
    search_type: SearchType | None = None
    search_count: int = Field(default=8, ge=1, le=20)
    web_search_results: list[WebSource] | None = None
    urgency: Urgency | None = None
    include_reasoning: bool = False


class RAGOptions(BaseModel):
    user_level: UserLevel | None = None
    auto_detect_level: bool = False


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------


def compute_confidence(contexts: Sequence[RetrievedContext]) -> float:
    """Mean similarity × 100, capped at 100, rounded to one decimal (0 if empty)."""
    if not contexts:
        return 0.0
    mean = sum(ctx.similarity for ctx in contexts) / len(contexts)
    return round(min(mean * 100, 100.0), 1)


def format_web_sources(sources: Sequence[WebSource]) -> str:
    blocks = []
    for source in sources[:MAX_WEB_SOURCES]:
        body = source.description
        if source.content:
            body += f"\n\nContent:\n{source.content[:WEB_CONTENT_LIMIT]}..."
        blocks.append(
            f'<web_source url="{source.url}" title="{source.title}">\n'
            f"{body}\n"
            f"</web_source>"
        )
    return "\n\n".join(blocks)


def compose_augmented_query(
    query: str,
    web_sources: Sequence[WebSource],
    mode: LearningMode,
    complexity: Complexity | None,
    urgency: Urgency | None = None,
) -> str:
    """
    Base query + web sources + mode, urgency and complexity directives.

    Each section is only present when it carries information: no sources
    block without sources, no mode directive for the default mode, an
    urgency directive only for high urgency.
    """
    augmented = query

    if web_sources:
        augmented = (
            f"{query}\n\n"
            f"Recent web sources:\n"
            f"{format_web_sources(web_sources)}\n"
            "Please incorporate relevant information from these sources in "
            "your response while providing your expert analysis and "
            "recommendations."
        )

    if mode != LearningMode.DEFAULT:
        label = mode.value.replace("-", " ").upper()
        augmented += (
            f"\n\nLEARNING MODE: {label}\n"
            f"Please respond according to the {mode.value} learning mode "
            "guidelines and provide the level of detail and specialization "
            "expected for this mode."
        )

    if urgency == Urgency.HIGH:
        directive = HIGH_URGENCY_DIRECTIVES.get(mode, DEFAULT_URGENCY_DIRECTIVE)
        augmented += f"\n\nUrgency: HIGH - {directive}"

    if complexity:
        augmented += (
            f"\n\nComplexity Level: {complexity.value.upper()} - "
            "Adjust explanation depth accordingly."
        )

    return augmented


def format_contexts(contexts: Sequence[RetrievedContext]) -> str:
    return "\n\n".join(
        f'<context source="{ctx.document_title}" relevance="{ctx.similarity:.3f}">\n'
        f"{ctx.text}\n"
        f"</context>"
        for ctx in contexts
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AssistantService:
    """
    Answer synthesis over retrieval, web search and generation.

    Usage::

        assistant = AssistantService(
            generator, selector, classifier, retriever, searcher, settings
        )
        stream = await assistant.ask_ai_assistant("design a system for 1M users")
        async for token in stream:
            print(token, end="")
        print(stream.response().metadata)

    Args:
        generator: Generation client (streaming and non-streaming).
        selector: Model tier / temperature / prompt selector.
        classifier: Intent classifier.
        retriever: Retrieval engine over the chunk index.
        searcher: Web search client, or None to run without web context.
        settings: Application settings (token cap, query length limit).
    """

    def __init__(
        self,
        generator: GenerationClient,
        selector: ModelSelector,
        classifier: IntentClassifier,
        retriever: RetrievalEngine,
        searcher: WebSearchClient | None,
        settings: BeaconSettings,
    ) -> None:
        self._generator = generator
        self._selector = selector
        self._classifier = classifier
        self._retriever = retriever
        self._searcher = searcher
        self._settings = settings

    # ------------------------------------------------------------------
    # Assistant
    # ------------------------------------------------------------------

    async def ask_ai_assistant(
        self,
        query: str,
        history: Sequence[ConversationMessage] = (),
        options: AssistantOptions | None = None,
    ) -> ResponseStream:
        """
        Answer ``query`` in the detected (or forced) learning mode.

        Steps:
            1. Resolve mode, complexity and whether to search.
            2. Search the web when needed (failures only lose web context).
            3. Compose the augmented query.
            4. Select model tier, temperature and system prompt.
            5. Append the augmented query to ``history`` and stream.

        Returns:
            A ``ResponseStream`` whose final response carries every
            decision in ``metadata``.

        Raises:
            InputError: If the query is blank or too long.
        """
        started_at = time.perf_counter()
        query = self._validate_query(query)
        options = options or AssistantOptions()

        # --- Step 1: Intent ---
        detected_mode = self._classifier.detect_learning_mode(query)
        mode = options.learning_mode or detected_mode
        detected_complexity = self._classifier.detect_complexity(query)
        complexity = options.complexity or detected_complexity
        search_enabled = (
            options.enable_search
            if options.enable_search is not None
            else self._classifier.should_perform_search(query, mode)
        )
        search_type = (
            options.search_type or self._classifier.get_search_type(query, mode)
            if search_enabled
            else None
        )

        # --- Step 2: Web search ---
        results: list[WebResult] = []
        analytics: SearchAnalytics | None = None
        if search_type is not None and not options.web_search_results:
            results, analytics = await self._search(
                query, mode, search_type, options.search_count
            )

        web_sources = [
            WebSource(
                title=r.title,
                url=r.url,
                description=r.description,
                content=r.snippet,
            )
            for r in results
        ] or list(options.web_search_results or [])

        # --- Step 3: Augmented query ---
        augmented = compose_augmented_query(
            query, web_sources, mode, complexity, options.urgency
        )

        # --- Step 4: Model, temperature, prompt ---
        tier = options.force_model or self._selector.select_optimal_model(
            mode, query, complexity
        )
        model = self._selector.model_name(tier)
        temperature = self._selector.temperature_for(mode)
        system_prompt = (
            BASE_SYSTEM_PROMPT
            if mode == LearningMode.DEFAULT
            else self._selector.get_prompt_for_learning_mode(mode)
        )

        metadata: dict[str, Any] = {
            "learning_mode": mode.value,
            "detected_mode": detected_mode.value,
            "model_tier": tier.value,
            "selected_model": model,
            "temperature": temperature,
            "complexity": complexity.value,
            "detected_complexity": detected_complexity.value,
            "urgency": options.urgency.value if options.urgency else None,
            "search_performed": search_enabled,
            "search_type": search_type.value if search_type else None,
            "search_result_count": len(results),
            "web_source_count": min(len(web_sources), MAX_WEB_SOURCES),
        }
        if analytics is not None:
            metadata["search_analytics"] = analytics.model_dump()
        if options.include_reasoning:
            metadata["reasoning"] = self._reasoning(
                options,
                mode,
                model,
                complexity,
                temperature,
                search_enabled,
                len(results),
            )

        # --- Step 5: Generate ---
        request = GenerationRequest(
            model=model,
            messages=[*history, ConversationMessage(role="user", content=augmented)],
            temperature=temperature,
            max_tokens=self._settings.MAX_TOKENS,
            system_prompt=system_prompt,
        )
        logger.info(
            "Assistant [%s] using %s (temp=%.1f, complexity=%s, search=%s)",
            mode,
            model,
            temperature,
            complexity,
            search_type or "off",
        )
        return ResponseStream(
            self._generator.stream(request),
            model=model,
            metadata=metadata,
            started_at=started_at,
        )

    # ------------------------------------------------------------------
    # RAG
    # ------------------------------------------------------------------

    async def ask_rag_assistant(
        self,
        query: str,
        contexts: Sequence[RetrievedContext] = (),
        options: RAGOptions | None = None,
    ) -> ResponseStream:
        """
        Answer from retrieved chunks with the light model.

        Every context becomes a ``<context source=".." relevance="..">``
        block. The user level is taken from ``options`` or, when
        ``auto_detect_level`` is set, detected from the query.

        Raises:
            InputError: If the query is blank or too long.
        """
        started_at = time.perf_counter()
        query = self._validate_query(query)
        options = options or RAGOptions()

        user_level = options.user_level
        if user_level is None and options.auto_detect_level:
            user_level = self._classifier.detect_user_level(query)

        augmented = query
        if contexts:
            augmented = (
                f"{query}\n\n"
                f"Relevant context:\n"
                f"{format_contexts(contexts)}\n\n"
                "Please provide a comprehensive answer using the provided "
                "context. If the context doesn't fully address the question, "
                "say so clearly."
            )
        if user_level:
            augmented += (
                f"\n\nUser Level: {user_level.value} - Please adjust your "
                "explanation complexity accordingly."
            )

        model = self._selector.model_name(ModelTier.LIGHT)
        request = GenerationRequest(
            model=model,
            messages=[ConversationMessage(role="user", content=augmented)],
            temperature=RAG_TEMPERATURE,
            max_tokens=self._settings.MAX_TOKENS,
            system_prompt=RAG_SYSTEM_PROMPT,
        )
        metadata: dict[str, Any] = {
            "query_type": "rag",
            "user_level": user_level.value if user_level else None,
            "context_count": len(contexts),
            "selected_model": model,
            "temperature": RAG_TEMPERATURE,
        }
        return ResponseStream(
            self._generator.stream(request),
            model=model,
            sources=contexts,
            confidence=compute_confidence(contexts),
            metadata=metadata,
            started_at=started_at,
        )

    async def ask_question(
        self,
        question: str,
        top_k: int = DEFAULT_TOP_K,
        document_id: uuid.UUID | str | None = None,
    ) -> AnswerResult:
        """
        Non-streaming question answering over the indexed documents.

        Returns:
            ``{answer, sources, confidence}``. When nothing relevant is
            retrieved the answer is a fixed sentence with confidence 0
            and no generation call is made.

        Raises:
            InputError: If the question is blank or too long.
            EmbeddingServiceError: If the question cannot be embedded.
            GenerationServiceError: If the provider fails.
        """
        question = self._validate_query(question)
        logger.info("Processing question: %r", question)

        contexts = await self._retriever.find_relevant_chunks(
            question, top_k, document_id
        )
        if not contexts:
            return AnswerResult(answer=NO_ANSWER, sources=[], confidence=0.0)

        completion = await self._generator.complete(
            self._qa_request(question, contexts)
        )
        return AnswerResult(
            answer=completion.content,
            sources=[
                SourceReference(
                    index=i,
                    document=ctx.document_title,
                    similarity=round(ctx.similarity, 3),
                    content=ctx.text[:SOURCE_PREVIEW_LIMIT] + "...",
                )
                for i, ctx in enumerate(contexts, start=1)
            ],
            confidence=compute_confidence(contexts),
        )

    async def stream_question(
        self,
        question: str,
        top_k: int = DEFAULT_TOP_K,
        document_id: uuid.UUID | str | None = None,
    ) -> ResponseStream:
        """Streaming variant of ``ask_question``."""
        started_at = time.perf_counter()
        question = self._validate_query(question)

        contexts = await self._retriever.find_relevant_chunks(
            question, top_k, document_id
        )
        model = self._selector.model_name(ModelTier.LIGHT)
        metadata: dict[str, Any] = {"query_type": "qa", "context_count": len(contexts)}

        if not contexts:
            return ResponseStream.from_text(
                NO_ANSWER, model=model, confidence=0.0, metadata=metadata
            )

        return ResponseStream(
            self._generator.stream(self._qa_request(question, contexts)),
            model=model,
            sources=contexts,
            confidence=compute_confidence(contexts),
            metadata=metadata,
            started_at=started_at,
        )

    def get_model_recommendation(
        self,
        query: str,
        mode: LearningMode | None = None,
        complexity: Complexity | None = None,
    ) -> ModelRecommendation:
        return self._selector.get_model_recommendation(query, mode, complexity)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate_query(self, query: str) -> str:
        trimmed = query.strip()
        if not trimmed:
            raise InputError("Query cannot be empty")
        if len(trimmed) > self._settings.MAX_QUERY_LENGTH:
            raise InputError(
                f"Query too long ({len(trimmed)} > "
                f"{self._settings.MAX_QUERY_LENGTH} characters)"
            )
        return trimmed

    async def _search(
        self,
        query: str,
        mode: LearningMode,
        search_type: SearchType,
        count: int,
    ) -> tuple[list[WebResult], SearchAnalytics | None]:
        """Run the search matching ``search_type``; failures yield no results."""
        if self._searcher is None or not self._searcher.enabled:
            logger.info("Web search not configured, answering without web context")
            return [], None

        logger.info("Performing %s search for query: %r", search_type, query)
        try:
            if search_type == SearchType.SOFTWARE:
                response = await self._searcher.search_software_engineering(
                    query, count=count
                )
            elif search_type == SearchType.RECENT:
                response = await self._searcher.search_recent_tech(query, "pw")
            else:
                response = await self._searcher.search_web(
                    query,
                    SearchOptions(
                        count=count,
                        include_news=mode == LearningMode.CAREER_ADVICE,
                    ),
                )
        except SearchServiceError as e:
            logger.warning("Search failed, continuing without search results: %s", e)
            return [], None

        return response.results, response.analytics

    def _qa_request(
        self, question: str, contexts: Sequence[RetrievedContext]
    ) -> GenerationRequest:
        numbered = "\n\n".join(
            f"[{i}] {ctx.text}" for i, ctx in enumerate(contexts, start=1)
        )
        prompt = (
            f"Context:\n{numbered}\n\n"
            f"Question: {question}\n\n"
            "Please provide a helpful answer based on the context above."
        )
        return GenerationRequest(
            model=self._selector.model_name(ModelTier.LIGHT),
            messages=[ConversationMessage(role="user", content=prompt)],
            temperature=QA_TEMPERATURE,
            max_tokens=QA_MAX_TOKENS,
            system_prompt=QA_SYSTEM_PROMPT,
        )

    @staticmethod
    def _reasoning(
        options: AssistantOptions,
        mode: LearningMode,
        model: str,
        complexity: Complexity,
        temperature: float,
        search_enabled: bool,
        result_count: int,
    ) -> str:
        mode_origin = "specified" if options.learning_mode else "auto-detected"
        complexity_origin = "specified" if options.complexity else "auto-detected"
        search = f"enabled ({result_count} results)" if search_enabled else "disabled"
        return (
            f"Learning Mode: {mode} ({mode_origin})\n"
            f"Model: {model} (optimized for {mode})\n"
            f"Complexity: {complexity} ({complexity_origin})\n"
            f"Temperature: {temperature} (optimized for task type)\n"
            f"Search: {search}"
        )
