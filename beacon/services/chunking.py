"""
Chunking Service

Splits Documents into bounded, boundary-aware Chunks for embedding and
vector retrieval.

Algorithm (windows of ``max_size`` characters):
    - If the window reaches the end of the text, it becomes the last chunk.
    - Otherwise look for the last ``.`` or newline inside the window. If it
      sits past half the window, cut just after it and start the next
      window there (clean boundary, no overlap).
    - Otherwise cut at the window edge and start the next window
      ``overlap`` characters earlier (forced cut, overlapping).

Every chunk is trimmed and empty chunks are dropped. The function is
deterministic and side-effect free.
"""

from __future__ import annotations

import logging
from typing import Final

from beacon.models.schemas import Chunk, Document

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE: Final[int] = 800
DEFAULT_CHUNK_OVERLAP: Final[int] = 100

PREVIEW_LENGTH: Final[int] = 100


def _validate(max_size: int, overlap: int) -> None:
    if max_size <= 0:
        raise ValueError(f"max_size ({max_size}) must be positive")
    if overlap < 0:
        raise ValueError(f"overlap ({overlap}) must not be negative")
    if overlap >= max_size:
        raise ValueError(
            f"overlap ({overlap}) must be less than max_size ({max_size})"
        )


def chunk_text(
    text: str,
    max_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """
    Split ``text`` into ordered, non-empty chunks.

    Args:
        text: Raw text to split.
        max_size: Window size in characters; no chunk is longer.
        overlap: Characters repeated at the start of the next window
            after a forced (non-boundary) cut.

    Returns:
        Ordered list of trimmed chunks. Empty input yields ``[]``; input
        shorter than ``max_size`` yields a single chunk.

    Raises:
        ValueError: If ``overlap >= max_size`` or either is out of range.
    """
    _validate(max_size, overlap)
    if not text:
        return []

    chunks: list[str] = []
    start = 0
    length = len(text)

    while start < length:
        end = min(start + max_size, length)
        window = text[start:end]

        if end < length:
            # Offsets are relative to the window start
            last_break = max(window.rfind("."), window.rfind("\n"))
            if last_break > max_size * 0.5:
                window = window[: last_break + 1]
                start += last_break + 1
            else:
                start = end - overlap
        else:
            start = end

        chunks.append(window.strip())

    return [chunk for chunk in chunks if chunk]


def chunk_metadata(text: str) -> dict[str, str | int]:
    """Per-chunk metadata stored next to the vector."""
    return {
        "length": len(text),
        "word_count": len(text.split()),
        "preview": text[:PREVIEW_LENGTH] + "...",
    }


class TextChunker:
    """
    Splits a Document into Chunks with sequential indices.

    Usage::

        chunker = TextChunker(max_size=800, overlap=100)
        chunks = chunker.split(document)
        # Each chunk has: document_id, index, text, metadata

    Args:
        max_size: Maximum characters per chunk.
        overlap: Characters shared after a forced cut.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_CHUNK_OVERLAP,
    ) -> None:
        _validate(max_size, overlap)
        self._max_size = max_size
        self._overlap = overlap

    @property
    def max_size(self) -> int:
        """Maximum characters per chunk."""
        return self._max_size

    @property
    def overlap(self) -> int:
        """Characters shared between consecutive chunks after a forced cut."""
        return self._overlap

    def split(self, document: Document) -> list[Chunk]:
        """
        Split a Document's content into Chunks.

        Args:
            document: Document with raw text content.

        Returns:
            Chunks with 0-based indices, parent reference and metadata.
        """
        texts = chunk_text(document.content, self._max_size, self._overlap)

        chunks = [
            Chunk(
                document_id=document.id,
                index=i,
                text=text,
                metadata=chunk_metadata(text),
            )
            for i, text in enumerate(texts)
        ]

        logger.info(
            "Split document '%s' into %d chunks (size=%d, overlap=%d)",
            document.title,
            len(chunks),
            self._max_size,
            self._overlap,
        )

        return chunks
