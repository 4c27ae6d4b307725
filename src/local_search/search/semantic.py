"""
Vector-based semantic search engine.

Embeds a query and scores every stored document embedding by cosine
similarity. This is an exact linear scan; there is no ANN index.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..embeddings import EmbeddingProvider
from ..storage import VectorStore
from ..vectors import cosine_similarity, normalize_l2
from .filters import path_matches

logger = logging.getLogger(__name__)

# Similarities below this are treated as noise.
SIMILARITY_FLOOR = 1e-3


class SemanticSearchEngine:
    """Embed a query and search stored document embeddings."""

    def __init__(
        self,
        storage: VectorStore,
        embedding_provider: EmbeddingProvider,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider

    def search(
        self,
        *,
        query: str,
        path_filters: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """Return ``(path, similarity)`` pairs, most similar first."""
        query_vector = normalize_l2(self.embedding_provider.embed(query))

        scored: list[tuple[str, float]] = []
        scanned = 0
        for record in self.storage.get_all_vectors():
            if not path_matches(record.path, path_filters):
                continue
            scanned += 1
            similarity = cosine_similarity(query_vector, record.vector)
            if similarity < SIMILARITY_FLOOR:
                continue
            scored.append((record.path, similarity))

        scored.sort(key=lambda item: (-item[1], item[0]))
        logger.debug(
            "Semantic scan over %d vectors kept %d candidates.", scanned, len(scored)
        )
        return scored
