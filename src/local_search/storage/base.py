"""
Storage interfaces and data models for index persistence.

The engine talks to three logically separate stores keyed by document
path: documents, embeddings and the lexical index. A single backend may
implement all of them over one connection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence


@dataclass(frozen=True)
class DocumentRecord:
    """A stored document."""

    path: str
    content: str
    metadata_json: str
    created_at: float
    updated_at: float


@dataclass(frozen=True)
class EmbeddingRecord:
    """A stored embedding for a document path."""

    path: str
    vector: list[float]


class DocumentStore(Protocol):
    """Canonical document content and metadata."""

    def insert_document(self, document: DocumentRecord) -> None:
        """Insert a new document. Raise DuplicateKeyError if the path exists."""

    def update_document(
        self,
        *,
        path: str,
        content: str,
        metadata_json: str,
        updated_at: float,
    ) -> int:
        """Update an existing document. Return the number of rows affected."""

    def delete_document(self, path: str) -> int:
        """Delete a document. Return the number of rows affected."""

    def get_document(self, path: str) -> DocumentRecord | None:
        """Get a document by path."""

    def get_documents(self, paths: Iterable[str]) -> dict[str, DocumentRecord]:
        """Get documents for a set of paths, keyed by path."""

    def count_documents(self) -> int:
        """Return the number of stored documents."""


class VectorStore(Protocol):
    """One embedding per document path, retrieved by full scan."""

    def put_vector(self, path: str, vector: Sequence[float]) -> None:
        """Insert or replace the vector for *path*."""

    def get_vector(self, path: str) -> list[float] | None:
        """Return the stored vector for *path*, if any."""

    def get_all_vectors(self) -> list[EmbeddingRecord]:
        """Return every stored vector."""

    def delete_vector(self, path: str) -> int:
        """Delete the vector for *path*. Return the number of rows affected."""


class LexicalIndex(Protocol):
    """Keyword index answering match queries with a relevance score."""

    def index_lexical(self, path: str, content: str) -> None:
        """Index (or re-index) the content for *path*."""

    def match_lexical(
        self,
        query: str,
        path_filters: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """Return ``(path, score)`` candidates; higher scores are more relevant."""

    def delete_lexical(self, path: str) -> int:
        """Remove *path* from the index. Return the number of rows affected."""


class StorageBackend(DocumentStore, VectorStore, LexicalIndex, Protocol):
    """A backend providing all three stores over one storage handle."""

    def refresh(self) -> None:
        """Discard and reopen the storage handle."""

    def close(self) -> None:
        """Release the storage handle."""
