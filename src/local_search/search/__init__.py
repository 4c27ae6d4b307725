"""Search helpers for indexed documents."""

from .filters import normalize_path_filters, path_matches
from .query import IndexedQueryEngine
from .ranker import (
    LEXICAL_WEIGHT,
    SEMANTIC_WEIGHT,
    RankedDocument,
    SearchMode,
    SearchResult,
    fuse_hybrid,
    max_normalize,
    rank_documents,
    softmax,
)
from .semantic import SIMILARITY_FLOOR, SemanticSearchEngine

__all__ = [
    "normalize_path_filters",
    "path_matches",
    "IndexedQueryEngine",
    "LEXICAL_WEIGHT",
    "SEMANTIC_WEIGHT",
    "RankedDocument",
    "SearchMode",
    "SearchResult",
    "fuse_hybrid",
    "max_normalize",
    "rank_documents",
    "softmax",
    "SIMILARITY_FLOOR",
    "SemanticSearchEngine",
]
