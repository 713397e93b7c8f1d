"""
Embedding Client Unit Tests

Tests for the OpenAI and sentence-transformers embedding clients with
mocked providers. No external API calls, no model download.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import openai
import pytest

from beacon.core.exceptions import EmbeddingServiceError
from beacon.services.embeddings import (
    EmbeddingClient,
    LocalEmbeddingClient,
    OpenAIEmbeddingClient,
)

# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


def _openai_client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.embeddings.create = create
    return client


class TestOpenAIEmbeddingClient:
    @pytest.mark.asyncio
    async def test_embed(self) -> None:
        """Calls the embeddings endpoint with the configured model."""
        mock_vector = [0.1] * 1536
        # Dynamically create response object matching OpenAI SDK structure
        mock_response = type(
            "Response", (), {"data": [type("Item", (), {"embedding": mock_vector})]}
        )
        create = AsyncMock(return_value=mock_response)
        client = OpenAIEmbeddingClient(_openai_client(create))

        vector = await client.embed("Hello World")

        assert len(vector) == 1536
        assert vector[0] == 0.1
        create.assert_called_once()
        _, kwargs = create.call_args
        assert kwargs["model"] == "text-embedding-3-small"
        assert kwargs["input"] == "Hello World"
        assert client.dimension == 1536
        assert isinstance(client, EmbeddingClient)

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self) -> None:
        error = openai.APIConnectionError(
            request=httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        )
        client = OpenAIEmbeddingClient(_openai_client(AsyncMock(side_effect=error)))

        with pytest.raises(EmbeddingServiceError, match="APIConnectionError"):
            await client.embed("Hello World")

    @pytest.mark.asyncio
    async def test_empty_response_is_an_error(self) -> None:
        empty = type("Response", (), {"data": []})
        client = OpenAIEmbeddingClient(_openai_client(AsyncMock(return_value=empty)))

        with pytest.raises(EmbeddingServiceError):
            await client.embed("Hello World")


# ---------------------------------------------------------------------------
# Local (sentence-transformers)
# ---------------------------------------------------------------------------


class TestLocalEmbeddingClient:
    @pytest.mark.asyncio
    async def test_embed_returns_python_floats(self) -> None:
        fake_model = MagicMock()
        fake_model.encode.return_value = np.full((1, 384), 0.5, dtype=np.float32)

        with patch(
            "sentence_transformers.SentenceTransformer", return_value=fake_model
        ) as loader:
            client = LocalEmbeddingClient()
            vector = await client.embed("useState")
            await client.embed("useEffect")

        loader.assert_called_once_with("all-MiniLM-L6-v2")
        assert len(vector) == 384
        assert isinstance(vector[0], float)
        args, kwargs = fake_model.encode.call_args
        assert args == (["useEffect"],)
        assert kwargs == {"normalize_embeddings": True}

    @pytest.mark.asyncio
    async def test_model_failure_is_wrapped(self) -> None:
        fake_model = MagicMock()
        fake_model.encode.side_effect = RuntimeError("CUDA out of memory")

        with patch(
            "sentence_transformers.SentenceTransformer", return_value=fake_model
        ):
            client = LocalEmbeddingClient()
            with pytest.raises(EmbeddingServiceError, match="CUDA"):
                await client.embed("useState")

    @pytest.mark.asyncio
    async def test_reset_reloads_model(self) -> None:
        with patch(
            "sentence_transformers.SentenceTransformer",
            return_value=MagicMock(
                encode=MagicMock(return_value=np.zeros((1, 384)))
            ),
        ) as loader:
            client = LocalEmbeddingClient()
            await client.embed("a")
            client.reset()
            await client.embed("b")

        assert loader.call_count == 2
