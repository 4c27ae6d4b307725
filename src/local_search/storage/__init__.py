"""Storage backends for local_search."""

from .base import (
    DocumentRecord,
    DocumentStore,
    EmbeddingRecord,
    LexicalIndex,
    StorageBackend,
    VectorStore,
)
from .duckdb import DuckDBStorage, tokenize

__all__ = [
    "DocumentRecord",
    "DocumentStore",
    "EmbeddingRecord",
    "LexicalIndex",
    "StorageBackend",
    "VectorStore",
    "DuckDBStorage",
    "tokenize",
]
