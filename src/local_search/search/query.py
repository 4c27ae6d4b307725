"""
Indexed query engine: lexical, semantic and hybrid retrieval.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

from ..embeddings import EmbeddingProvider
from ..errors import NotConfiguredError, StorageError
from ..index_config import DEFAULT_LIMIT
from ..storage import StorageBackend
from .filters import normalize_path_filters
from .ranker import (
    RankedDocument,
    SearchMode,
    SearchResult,
    fuse_hybrid,
    rank_documents,
    rank_lexical,
    rank_semantic,
)
from .semantic import SemanticSearchEngine

logger = logging.getLogger(__name__)


class IndexedQueryEngine:
    """Retrieval over a storage backend with an optional embedding provider.

    Without a provider, semantic search raises ``NotConfiguredError`` and
    hybrid search degrades to lexical-only results.
    """

    def __init__(
        self,
        storage: StorageBackend,
        embedding_provider: EmbeddingProvider | None = None,
        *,
        default_limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.default_limit = default_limit

    def search(
        self,
        *,
        query: str,
        mode: SearchMode | str = SearchMode.HYBRID,
        limit: int | None = None,
        path_filters: Iterable[str] | None = None,
    ) -> list[SearchResult]:
        search_mode = SearchMode.parse(mode)
        normalized_limit = max(limit if limit is not None else self.default_limit, 0)
        filters = normalize_path_filters(path_filters)

        if search_mode is SearchMode.LEXICAL:
            ranked = self._search_lexical(query=query, path_filters=filters)
        elif search_mode is SearchMode.SEMANTIC:
            ranked = self._search_semantic(query=query, path_filters=filters)
        else:
            ranked = self._search_hybrid(query=query, path_filters=filters)

        # Limit only after fusion so the top-N reflects the fused order.
        top = rank_documents(ranked, limit=normalized_limit)
        results = self._attach_documents(top)
        logger.debug(
            "%s search for %r returned %d of %d candidates.",
            search_mode.value,
            query,
            len(results),
            len(ranked),
        )
        return results

    def _search_lexical(
        self, *, query: str, path_filters: tuple[str, ...] | None
    ) -> list[RankedDocument]:
        candidates = self.storage.match_lexical(query, path_filters)
        return rank_lexical(candidates)

    def _search_semantic(
        self, *, query: str, path_filters: tuple[str, ...] | None
    ) -> list[RankedDocument]:
        if self.embedding_provider is None:
            raise NotConfiguredError("Semantic search requires an embedding provider.")
        candidates = SemanticSearchEngine(self.storage, self.embedding_provider).search(
            query=query,
            path_filters=path_filters,
        )
        return rank_semantic(candidates)

    def _search_hybrid(
        self, *, query: str, path_filters: tuple[str, ...] | None
    ) -> list[RankedDocument]:
        if self.embedding_provider is None:
            logger.debug("No embedding provider; hybrid search falls back to lexical-only.")
            return self._search_lexical(query=query, path_filters=path_filters)

        try:
            lexical = self.storage.match_lexical(query, path_filters)
        except StorageError as exc:
            logger.warning("Lexical sub-query failed, using semantic results only: %s", exc)
            lexical = []

        semantic = SemanticSearchEngine(self.storage, self.embedding_provider).search(
            query=query,
            path_filters=path_filters,
        )
        return fuse_hybrid(lexical, semantic)

    def _attach_documents(self, ranked: list[RankedDocument]) -> list[SearchResult]:
        documents = self.storage.get_documents(doc.path for doc in ranked)
        results: list[SearchResult] = []
        for doc in ranked:
            record = documents.get(doc.path)
            if record is None:
                # Index entry without a document row: a partially written path.
                logger.debug("Skipping %s: no document record.", doc.path)
                continue
            results.append(
                SearchResult(
                    path=record.path,
                    metadata=_load_metadata(record.metadata_json),
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                    fts_score=doc.fts_score,
                    semantic_score=doc.semantic_score,
                    final_score=doc.final_score,
                )
            )
        return results


def _load_metadata(metadata_json: str) -> dict[str, str] | None:
    try:
        metadata = json.loads(metadata_json)
    except json.JSONDecodeError:
        logger.debug("Ignoring unreadable metadata: %r", metadata_json)
        return None
    if not isinstance(metadata, dict):
        return None
    return {str(key): str(value) for key, value in metadata.items()}
