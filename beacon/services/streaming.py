"""
Response Stream

Single-producer / single-consumer fan-out for streamed answers.

A producer task pulls ``StreamEvent``s from the generation client into a
bounded ``asyncio.Queue``. The consumer iterates the stream to receive
tokens as they arrive, while the stream itself accumulates the full text
and the usage reported by the final ``done`` event. Once drained,
``response()`` returns the complete ``AssistantResponse``.

Abandoning the stream (``aclose()``, or breaking out of iteration) cancels
the producer, which closes the provider stream. Nothing is persisted
mid-stream, so there is nothing else to clean up.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Any, Final

from beacon.models.schemas import AssistantResponse, RetrievedContext, Usage
from beacon.services.llm import StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE: Final[int] = 64


@dataclass(frozen=True)
class _StreamFailure:
    error: Exception


_END: Final = object()


class ResponseStream:
    """
    Streamed answer with final usage and metadata.

    Usage::

        stream = await assistant.ask_ai_assistant(query)
        async for token in stream:
            print(token, end="")
        final = stream.response()
        print(final.usage.total_tokens, final.metadata["learning_mode"])

    Args:
        events: Provider event stream (tokens, then one ``done`` event).
        model: Model identifier reported in the final response.
        sources: Retrieved contexts that were injected into the prompt.
        confidence: Heuristic retrieval confidence, if applicable.
        metadata: Decisions taken while answering (reported as-is).
        started_at: ``time.perf_counter()`` value at request start.
        max_buffer: Queue bound between producer and consumer.
    """

    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        *,
        model: str,
        sources: Sequence[RetrievedContext] = (),
        confidence: float | None = None,
        metadata: dict[str, Any] | None = None,
        started_at: float | None = None,
        max_buffer: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._events = events
        self._model = model
        self._sources = list(sources)
        self._confidence = confidence
        self.metadata: dict[str, Any] = metadata if metadata is not None else {}
        self._started_at = started_at if started_at is not None else time.perf_counter()
        self._max_buffer = max_buffer

        self._queue: asyncio.Queue[object] | None = None
        self._first: object | None = None
        self._producer: asyncio.Task[None] | None = None
        self._parts: list[str] = []
        self._usage = Usage()
        self._elapsed_ms = 0
        self._consumed = False
        self._finished = False

    @classmethod
    def from_text(
        cls,
        text: str,
        *,
        model: str,
        sources: Sequence[RetrievedContext] = (),
        confidence: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ResponseStream:
        """Wrap a fixed answer (no provider call) in a stream."""

        async def events() -> AsyncGenerator[StreamEvent, None]:
            yield StreamEvent(type="token", text=text)
            yield StreamEvent(type="done", usage=Usage())

        return cls(
            events(),
            model=model,
            sources=sources,
            confidence=confidence,
            metadata=metadata,
        )

    @property
    def finished(self) -> bool:
        return self._finished

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def __aiter__(self) -> AsyncIterator[str]:
        return self.tokens()

    async def tokens(self) -> AsyncGenerator[str, None]:
        """
        Yield answer tokens as the provider produces them.

        Raises:
            RuntimeError: If the stream is iterated a second time.
            GenerationServiceError: If the provider fails mid-stream.
        """
        if self._consumed:
            raise RuntimeError("ResponseStream can only be consumed once")
        self._consumed = True
        queue = self._queue if self._queue is not None else self._start()

        try:
            while True:
                if self._first is not None:
                    item, self._first = self._first, None
                else:
                    item = await queue.get()
                if item is _END:
                    self._finish()
                    return
                if isinstance(item, _StreamFailure):
                    raise item.error
                assert isinstance(item, StreamEvent)
                if item.type == "token":
                    self._parts.append(item.text)
                    yield item.text
                elif item.type == "done" and item.usage is not None:
                    self._usage = item.usage
        finally:
            if not self._finished:
                await self.aclose()

    async def start(self) -> None:
        """
        Start the provider and wait for its first event.

        Lets callers surface a provider that fails outright before any
        output is committed (e.g. before HTTP headers are sent). Calling
        it again, or after iteration has begun, is a no-op.

        Raises:
            GenerationServiceError: If the provider fails before its first
                event.
        """
        if self._queue is not None:
            return
        queue = self._start()
        first = await queue.get()
        if isinstance(first, _StreamFailure):
            self._consumed = True
            assert self._producer is not None
            await self._producer
            raise first.error
        self._first = first

    async def collect(self) -> AssistantResponse:
        """Drain the stream and return the final response."""
        async for _ in self:
            pass
        return self.response()

    def response(self) -> AssistantResponse:
        """
        Final response (content, usage, timing, sources, metadata).

        Raises:
            RuntimeError: If the stream has not been fully consumed.
        """
        if not self._finished:
            raise RuntimeError("ResponseStream has not been fully consumed")
        return AssistantResponse(
            content="".join(self._parts),
            usage=self._usage,
            model=self._model,
            processing_time_ms=self._elapsed_ms,
            confidence=self._confidence,
            sources=self._sources,
            metadata=self.metadata,
        )

    async def aclose(self) -> None:
        """Cancel the producer (and with it the provider stream)."""
        producer = self._producer
        if producer is not None and not producer.done():
            producer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await producer
            logger.info("Response stream cancelled by consumer (model=%s)", self._model)
        elif producer is None:
            await self._close_events()

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def _start(self) -> asyncio.Queue[object]:
        self._queue = asyncio.Queue(maxsize=self._max_buffer)
        self._producer = asyncio.create_task(self._produce(self._queue))
        return self._queue

    async def _produce(self, queue: asyncio.Queue[object]) -> None:
        try:
            async for event in self._events:
                await queue.put(event)
        except Exception as e:  # forwarded to the consumer, which re-raises it
            await queue.put(_StreamFailure(e))
            return
        finally:
            await self._close_events()
        await queue.put(_END)

    async def _close_events(self) -> None:
        if isinstance(self._events, AsyncGenerator):
            await self._events.aclose()

    def _finish(self) -> None:
        self._finished = True
        self._elapsed_ms = int((time.perf_counter() - self._started_at) * 1000)
        logger.info(
            "Response stream complete (model=%s, chars=%d, tokens=%d, %dms)",
            self._model,
            sum(len(p) for p in self._parts),
            self._usage.total_tokens,
            self._elapsed_ms,
        )
