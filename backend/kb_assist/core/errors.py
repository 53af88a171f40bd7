"""Error taxonomy shared by ingestion, retrieval and generation."""

from __future__ import annotations


class KnowledgeBaseError(Exception):
    """Base class for every failure the core surfaces to its callers.

    ``status_code`` is the HTTP status the API layer answers with; the
    message itself is for logs only and is never shown to end users.
    """

    status_code: int = 500
    kind: str = "internal"


class FetchError(KnowledgeBaseError):
    """Source page unreachable, timed out, or answered with a non-2xx status."""

    status_code = 502
    kind = "fetch"

    def __init__(self, message: str, url: str | None = None, status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class InvalidURLError(FetchError):
    """URL is not an absolute http(s) address."""

    status_code = 400
    kind = "invalid_url"


class EmptyContentError(KnowledgeBaseError):
    """Sanitizing the page left no text to store."""

    status_code = 422
    kind = "empty_content"


class EmbeddingServiceError(KnowledgeBaseError):
    """Embedding call failed or returned malformed data."""

    status_code = 502
    kind = "embedding"


class PersistenceError(KnowledgeBaseError):
    """Document store read or write failed."""

    status_code = 503
    kind = "persistence"


class GenerationError(KnowledgeBaseError):
    """Language-model call failed or returned malformed data."""

    status_code = 502
    kind = "generation"


class ConfigurationError(KnowledgeBaseError):
    """Deployment is misconfigured; retrying cannot help."""

    kind = "configuration"


class EmbeddingDimensionError(ConfigurationError):
    """A vector does not match the dimensionality the store was built with."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding dimension mismatch: store uses {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


__all__ = [
    "KnowledgeBaseError",
    "FetchError",
    "InvalidURLError",
    "EmptyContentError",
    "EmbeddingServiceError",
    "PersistenceError",
    "GenerationError",
    "ConfigurationError",
    "EmbeddingDimensionError",
]
