"""
local_search - local hybrid document retrieval.

Indexes text documents in DuckDB and answers queries by fusing BM25
keyword relevance with embedding cosine similarity.

Example usage:
    >>> from local_search import LocalSearchEngine, SearchMode
    >>> engine = LocalSearchEngine.open("search.duckdb")
    >>> engine.insert("notes/a.txt", "rust systems programming")
    >>> engine.search("programming", SearchMode.LEXICAL, limit=5)
"""

from .embeddings import (
    EmbeddingProvider,
    GenAIEmbeddingProvider,
    SentenceTransformersEmbeddingProvider,
    build_embedding_provider,
)
from .engine import LocalSearchEngine
from .errors import (
    DuplicateKeyError,
    LocalSearchError,
    NotConfiguredError,
    ProviderError,
    ReferentialIntegrityError,
    StorageError,
)
from .models import DocumentRequest
from .search import SearchMode, SearchResult
from .storage import DuckDBStorage
from .vectors import cosine_similarity, normalize_l2

__all__ = [
    # Engine
    "LocalSearchEngine",
    "SearchMode",
    "SearchResult",
    "DocumentRequest",
    # Storage
    "DuckDBStorage",
    # Embeddings
    "EmbeddingProvider",
    "GenAIEmbeddingProvider",
    "SentenceTransformersEmbeddingProvider",
    "build_embedding_provider",
    "cosine_similarity",
    "normalize_l2",
    # Errors
    "LocalSearchError",
    "DuplicateKeyError",
    "NotConfiguredError",
    "ProviderError",
    "ReferentialIntegrityError",
    "StorageError",
]
