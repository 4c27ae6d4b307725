"""
Error taxonomy for the retrieval engine.
"""

from __future__ import annotations


class LocalSearchError(Exception):
    """Base class for every error raised by local_search."""


class DuplicateKeyError(LocalSearchError):
    """Raised when inserting a document whose path already exists."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Document already exists: {path!r}")
        self.path = path


class NotConfiguredError(LocalSearchError):
    """Raised when semantic search is requested without an embedding provider."""


class StorageError(LocalSearchError):
    """Raised when the storage engine fails. The driver error is chained as the cause."""


class ProviderError(LocalSearchError):
    """Raised when an embedding provider cannot compute an embedding."""


class ReferentialIntegrityError(LocalSearchError):
    """Raised when a vector is written for a path with no document record."""

    def __init__(self, path: str) -> None:
        super().__init__(f"No document record for embedding path: {path!r}")
        self.path = path
