"""
Embedding Clients

Convert text into fixed-dimension vectors.

Two implementations of the ``EmbeddingClient`` protocol:
    - OpenAIEmbeddingClient: remote ``text-embedding-3-small`` (1536 dims)
      through the official ``openai`` SDK.
    - LocalEmbeddingClient: ``all-MiniLM-L6-v2`` (384 dims) through
      sentence-transformers, for offline deployments.

Clients are constructed explicitly and injected; there is no module-level
singleton. No caching: every call hits the provider.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Final, Protocol, runtime_checkable

import openai
from openai import AsyncOpenAI

from beacon.core.exceptions import EmbeddingServiceError

logger = logging.getLogger(__name__)

OPENAI_EMBEDDING_MODEL: Final[str] = "text-embedding-3-small"
OPENAI_EMBEDDING_DIMENSION: Final[int] = 1536

LOCAL_MODEL_NAME: Final[str] = "all-MiniLM-L6-v2"
LOCAL_EMBEDDING_DIMENSION: Final[int] = 384


@runtime_checkable
class EmbeddingClient(Protocol):
    """Anything that turns a string into a ``dimension``-long vector."""

    dimension: int

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingClient:
    """
    Embedding client backed by the OpenAI embeddings endpoint.

    Usage::

        client = OpenAIEmbeddingClient(AsyncOpenAI(api_key="sk-..."))
        vector = await client.embed("React hooks tutorial")
        assert len(vector) == 1536

    Args:
        client: Configured ``AsyncOpenAI`` instance (owned by the caller).
        model: Embedding model name.
        dimension: Vector length produced by ``model``.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = OPENAI_EMBEDDING_MODEL,
        dimension: int = OPENAI_EMBEDDING_DIMENSION,
    ) -> None:
        self._client = client
        self._model = model
        self.dimension = dimension

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingServiceError: On transport, quota or API failure.
        """
        try:
            response = await self._client.embeddings.create(
                model=self._model,
                input=text,
                encoding_format="float",
            )
        except openai.OpenAIError as e:
            raise EmbeddingServiceError(f"{type(e).__name__}: {e}") from e

        if not response.data:
            raise EmbeddingServiceError("provider returned no embedding")

        vector = list(response.data[0].embedding)
        logger.debug("Embedded %d chars with %s", len(text), self._model)
        return vector


class LocalEmbeddingClient:
    """
    Embedding client backed by a local sentence-transformers model.

    The model is loaded lazily on first use (per instance). Inference is
    CPU-bound and runs via ``asyncio.to_thread`` so the event loop stays
    responsive.

    Args:
        model_name: sentence-transformers model identifier.
        dimension: Vector length produced by the model.
    """

    def __init__(
        self,
        model_name: str = LOCAL_MODEL_NAME,
        dimension: int = LOCAL_EMBEDDING_DIMENSION,
    ) -> None:
        self._model_name = model_name
        self._model: Any = None
        self.dimension = dimension

    def _get_model(self) -> Any:
        """
        Get or lazily initialize the model.

        The import is deferred so ``sentence_transformers`` is not loaded
        at import time (keeps test collection fast).
        """
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s ...", self._model_name)
            self._model = SentenceTransformer(self._model_name)
            logger.info("Model loaded (dim=%d)", self.dimension)
        return self._model

    def _encode_sync(self, text: str) -> list[float]:
        """Synchronous encoding; always call via ``asyncio.to_thread``."""
        model = self._get_model()
        embedding = model.encode([text], normalize_embeddings=True)
        # numpy ndarray → native Python list
        result: list[float] = embedding[0].tolist()
        return result

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingServiceError: If the model cannot be loaded or run.
        """
        try:
            return await asyncio.to_thread(self._encode_sync, text)
        except (OSError, RuntimeError, ValueError) as e:
            raise EmbeddingServiceError(f"{type(e).__name__}: {e}") from e

    def reset(self) -> None:
        """Release the model from memory."""
        self._model = None
        logger.info("Local embedding model released")
