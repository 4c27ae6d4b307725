"""
Ranking helpers for merging retrieval result sets.

Lexical-only results are softmax-normalized. Hybrid results blend a
max-normalized lexical score with the raw cosine similarity using fixed
weights.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np


# Fixed blend weights for hybrid search.
LEXICAL_WEIGHT = 0.6
SEMANTIC_WEIGHT = 0.4

_MAX_SCORE_EPSILON = 1e-5


class SearchMode(str, Enum):
    """Retrieval strategy for a query."""

    LEXICAL = "lexical"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: "SearchMode | str") -> "SearchMode":
        if isinstance(value, SearchMode):
            return value
        key = str(value).strip().lower()
        aliases = {
            "fulltext": cls.LEXICAL,
            "fts": cls.LEXICAL,
            "embedding": cls.SEMANTIC,
        }
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            valid = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown search mode {value!r}. Use one of: {valid}") from None


@dataclass(frozen=True)
class SearchResult:
    """A ranked document returned by a search."""

    path: str
    metadata: dict[str, str] | None
    created_at: float
    updated_at: float
    fts_score: float | None
    semantic_score: float | None
    final_score: float


@dataclass(frozen=True)
class RankedDocument:
    """A scored candidate before document fields are attached."""

    path: str
    fts_score: float | None
    semantic_score: float | None
    final_score: float


def softmax(scores: Sequence[float]) -> list[float]:
    """Softmax with the max subtracted before exponentiating."""
    if len(scores) == 0:
        return []
    values = np.asarray(scores, dtype=np.float64)
    exps = np.exp(values - values.max())
    return (exps / exps.sum()).tolist()


def max_normalize(scores: Sequence[float]) -> list[float]:
    """Divide by the maximum score; a near-zero maximum divides by 1.0."""
    if len(scores) == 0:
        return []
    max_score = max(scores)
    divisor = 1.0 if abs(max_score) < _MAX_SCORE_EPSILON else max_score
    return [float(score) / divisor for score in scores]


def rank_lexical(candidates: Sequence[tuple[str, float]]) -> list[RankedDocument]:
    """Turn raw lexical relevance into softmax probabilities."""
    probabilities = softmax([score for _, score in candidates])
    return [
        RankedDocument(path=path, fts_score=prob, semantic_score=None, final_score=prob)
        for (path, _), prob in zip(candidates, probabilities)
    ]


def rank_semantic(candidates: Sequence[tuple[str, float]]) -> list[RankedDocument]:
    return [
        RankedDocument(path=path, fts_score=None, semantic_score=score, final_score=score)
        for path, score in candidates
    ]


def fuse_hybrid(
    lexical: Sequence[tuple[str, float]],
    semantic: Sequence[tuple[str, float]],
) -> list[RankedDocument]:
    """Merge lexical and semantic candidates by path.

    A side that did not return a path stays None on the result and counts
    as 0 in the weighted sum.
    """
    merged: dict[str, dict[str, float | None]] = {}

    normalized = max_normalize([score for _, score in lexical])
    for (path, _), score in zip(lexical, normalized):
        merged[path] = {"fts_score": score, "semantic_score": None}

    for path, score in semantic:
        entry = merged.setdefault(path, {"fts_score": None, "semantic_score": None})
        entry["semantic_score"] = float(score)

    documents: list[RankedDocument] = []
    for path, entry in merged.items():
        fts_score = entry["fts_score"]
        semantic_score = entry["semantic_score"]
        final_score = LEXICAL_WEIGHT * (fts_score or 0.0) + SEMANTIC_WEIGHT * (
            semantic_score or 0.0
        )
        documents.append(
            RankedDocument(
                path=path,
                fts_score=fts_score,
                semantic_score=semantic_score,
                final_score=final_score,
            )
        )
    return documents


def rank_documents(
    documents: Sequence[RankedDocument], *, limit: int | None = None
) -> list[RankedDocument]:
    """Sort by descending final score, then path, and keep at most *limit*.

    A zero or negative limit yields no documents.
    """
    ordered = sorted(documents, key=lambda doc: (-doc.final_score, doc.path))
    if limit is None:
        return ordered
    return ordered[: max(limit, 0)]
