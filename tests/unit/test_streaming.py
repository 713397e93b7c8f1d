"""
Response Stream Unit Tests

Verifies ResponseStream: token order, final usage and metadata, single
consumption, error propagation, and cancellation of the provider stream
when the consumer goes away.

No external services required — runs entirely offline.
"""

from __future__ import annotations

import pytest
from fakes import FakeGenerationClient

from beacon.core.exceptions import GenerationServiceError
from beacon.models.schemas import ConversationMessage, RetrievedContext, Usage
from beacon.services.llm import GenerationRequest
from beacon.services.streaming import ResponseStream

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _request() -> GenerationRequest:
    return GenerationRequest(
        model="light-model",
        messages=[ConversationMessage(role="user", content="hi")],
    )


def _stream(client: FakeGenerationClient, **kwargs) -> ResponseStream:
    return ResponseStream(client.stream(_request()), model="light-model", **kwargs)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestConsumption:
    @pytest.mark.asyncio
    async def test_tokens_arrive_in_order(
        self, generator: FakeGenerationClient
    ) -> None:
        stream = _stream(generator)

        tokens = [token async for token in stream]

        assert tokens == ["Hello", ", ", "world"]
        assert stream.finished

    @pytest.mark.asyncio
    async def test_final_response(self, generator: FakeGenerationClient) -> None:
        source = RetrievedContext(chunk_id="c1", text="ctx", similarity=0.9)
        stream = _stream(
            generator,
            sources=[source],
            confidence=90.0,
            metadata={"learning_mode": "default"},
        )

        response = await stream.collect()

        assert response.content == "Hello, world"
        assert response.usage == Usage.of(12, 3)
        assert response.usage.total_tokens == 15
        assert response.model == "light-model"
        assert response.confidence == 90.0
        assert response.sources == [source]
        assert response.metadata == {"learning_mode": "default"}
        assert response.processing_time_ms >= 0

    @pytest.mark.asyncio
    async def test_metadata_can_be_extended_before_completion(
        self, generator: FakeGenerationClient
    ) -> None:
        stream = _stream(generator, metadata={"a": 1})
        stream.metadata["b"] = 2

        response = await stream.collect()

        assert response.metadata == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_provider_stream_closed_after_completion(
        self, generator: FakeGenerationClient
    ) -> None:
        await _stream(generator).collect()

        assert generator.closed

    @pytest.mark.asyncio
    async def test_from_text(self) -> None:
        stream = ResponseStream.from_text(
            "Nothing found.", model="light-model", metadata={"query_type": "qa"}
        )

        tokens = [token async for token in stream]
        response = stream.response()

        assert tokens == ["Nothing found."]
        assert response.content == "Nothing found."
        assert response.usage.total_tokens == 0
        assert response.metadata == {"query_type": "qa"}


# ---------------------------------------------------------------------------
# Misuse & failures
# ---------------------------------------------------------------------------


class TestContract:
    @pytest.mark.asyncio
    async def test_response_before_completion_raises(
        self, generator: FakeGenerationClient
    ) -> None:
        stream = _stream(generator)

        with pytest.raises(RuntimeError):
            stream.response()

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_second_iteration_raises(
        self, generator: FakeGenerationClient
    ) -> None:
        stream = _stream(generator)
        await stream.collect()

        with pytest.raises(RuntimeError):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_provider_error_propagates_after_partial_output(self) -> None:
        client = FakeGenerationClient(fail_after=1)
        stream = _stream(client)
        received: list[str] = []

        with pytest.raises(GenerationServiceError):
            async for token in stream:
                received.append(token)

        assert received == ["Hello"]
        assert not stream.finished
        with pytest.raises(RuntimeError):
            stream.response()


class TestStart:
    """``start()`` waits for the provider's first event."""

    @pytest.mark.asyncio
    async def test_failure_before_first_event_raises(self) -> None:
        client = FakeGenerationClient(fail_after=0)
        stream = _stream(client)

        with pytest.raises(GenerationServiceError):
            await stream.start()

        assert client.closed
        assert client.produced == 0
        with pytest.raises(RuntimeError):
            async for _ in stream:
                pass

    @pytest.mark.asyncio
    async def test_first_token_is_not_lost(
        self, generator: FakeGenerationClient
    ) -> None:
        stream = _stream(generator)

        await stream.start()
        await stream.start()
        response = await stream.collect()

        assert response.content == "Hello, world"
        assert response.usage == Usage.of(12, 3)

    @pytest.mark.asyncio
    async def test_started_stream_can_be_abandoned(self) -> None:
        client = FakeGenerationClient(tokens=["t"] * 50)
        stream = _stream(client, max_buffer=1)

        await stream.start()
        await stream.aclose()

        assert client.closed
        assert client.produced < 50


class TestCancellation:
    @pytest.mark.asyncio
    async def test_closing_the_consumer_cancels_the_producer(self) -> None:
        client = FakeGenerationClient(tokens=["t"] * 50)
        stream = _stream(client, max_buffer=1)
        tokens = stream.tokens()

        first = await tokens.__anext__()
        await tokens.aclose()

        assert first == "t"
        assert client.closed
        assert client.produced < 50
        assert not stream.finished

    @pytest.mark.asyncio
    async def test_aclose_is_safe_after_completion(
        self, generator: FakeGenerationClient
    ) -> None:
        stream = _stream(generator)
        await stream.collect()

        await stream.aclose()

        assert stream.response().content == "Hello, world"
