"""
Exception hierarchy for notemap.

    NotemapError (base)
    ├── ConfigurationError
    ├── FetchError          one document could not be fetched from its source
    ├── EmbeddingError      one chunk could not be embedded
    ├── NoEmbeddingsError   a clustering pass found nothing to cluster
    └── StoreWriteError     a write to the vector store failed or did not verify

FetchError and EmbeddingError are recovered per document / per chunk and only
show up in result tallies. NoEmbeddingsError and StoreWriteError abort the pass
and reach the caller.
"""

from typing import Any, Dict, Optional


class NotemapError(Exception):
    """Base exception for all notemap errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {type(self.cause).__name__}: {self.cause})"
        return self.message


class ConfigurationError(NotemapError):
    """Missing or invalid configuration."""


class FetchError(NotemapError):
    """The document source failed to return a document."""


class EmbeddingError(NotemapError):
    """The embedding model failed or returned a malformed vector."""


class NoEmbeddingsError(NotemapError):
    """No document has an embedding, so there is nothing to cluster."""


class StoreWriteError(NotemapError):
    """A batch write to the vector store failed or could not be verified."""

    def __init__(
        self,
        message: str,
        persisted: int = 0,
        expected: int = 0,
        failed_keys: Optional[list] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            details={"persisted": persisted, "expected": expected},
            cause=cause,
        )
        self.persisted = persisted
        self.expected = expected
        self.failed_keys = failed_keys or []
