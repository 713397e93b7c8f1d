"""
BEACON Exceptions

Error kinds raised by the RAG core. Route handlers translate them into
HTTP status codes (see ``beacon.main``).

Hierarchy::

    BeaconError
    ├── InputError              client error, never retried
    ├── InvariantError          broken pipeline invariant, fatal
    └── ServiceError            transient provider failure, retryable
        ├── EmbeddingServiceError
        ├── GenerationServiceError
        ├── SearchServiceError
        └── VectorStoreError
"""

from __future__ import annotations


class BeaconError(Exception):
    """Base class for all BEACON errors."""


class InputError(BeaconError):
    """Raised for empty, oversized or otherwise invalid queries."""


class InvariantError(BeaconError):
    """Raised when a storage invariant is violated (count or dimension mismatch)."""


class ServiceError(BeaconError):
    """
    Raised when an external provider fails.

    Attributes:
        service: Short provider label used in logs ("embedding", "search", ...).
    """

    service: str = "external"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.service} service error: {self.message}"


class EmbeddingServiceError(ServiceError):
    service = "embedding"


class GenerationServiceError(ServiceError):
    service = "generation"


class SearchServiceError(ServiceError):
    service = "search"


class VectorStoreError(ServiceError):
    service = "vector store"
