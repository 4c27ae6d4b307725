"""
Embedding providers for vector-based semantic search.

Every provider returns L2-normalized vectors. ``GenAIEmbeddingProvider``
wraps the Google GenAI embedding API; ``SentenceTransformersEmbeddingProvider``
runs a local model.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol

import httpx
from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors

from .errors import ProviderError
from .index_config import resolve_cache_dir, resolve_embedding_backend
from .vectors import normalize_l2

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50
_DEFAULT_TASK_TYPE = "SEMANTIC_SIMILARITY"

DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class EmbeddingProvider(Protocol):
    """Maps text to a fixed-length, L2-normalized vector."""

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, preserving order."""


class GenAIEmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        task_type: str = _DEFAULT_TASK_TYPE,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("LOCAL_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("LOCAL_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(
            os.getenv("LOCAL_SEARCH_EMBEDDING_BATCH_SIZE", str(_DEFAULT_BATCH_SIZE))
        )
        self.task_type = task_type

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts in batches.

        Returns a list of normalized vectors in the same order as *texts*.
        """
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                result = self._client.models.embed_content(
                    model=self.model,
                    contents=batch,
                    config={
                        "task_type": self.task_type,
                        "output_dimensionality": self.dim,
                    },
                )
            except (genai_errors.APIError, httpx.HTTPError) as exc:
                raise ProviderError(f"GenAI embedding request failed: {exc}") from exc
            for emb in result.embeddings:
                all_embeddings.append(normalize_l2(list(emb.values)))
        if len(all_embeddings) != len(texts):
            raise ProviderError(
                f"GenAI returned {len(all_embeddings)} embeddings for {len(texts)} texts."
            )
        return all_embeddings

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]


class SentenceTransformersEmbeddingProvider:
    """Embeddings from a local sentence-transformers model."""

    def __init__(
        self,
        model_name: str = DEFAULT_LOCAL_MODEL,
        *,
        cache_dir: str | None = None,
        model: Any | None = None,
    ) -> None:
        self.model_name = model_name
        if model is not None:
            self._model = model
            return
        try:
            from sentence_transformers import SentenceTransformer  # type: ignore
        except ImportError as exc:
            raise ProviderError(
                "sentence-transformers is not installed. "
                "Install with `pip install local-search[local]`."
            ) from exc
        try:
            self._model = SentenceTransformer(
                model_name, cache_folder=resolve_cache_dir(cache_dir)
            )
        except (OSError, RuntimeError, ValueError) as exc:
            raise ProviderError(f"Failed to load embedding model {model_name!r}: {exc}") from exc
        logger.info("Initialized embedding model: %s", model_name)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        try:
            vectors = self._model.encode(texts, normalize_embeddings=True)
        except (RuntimeError, ValueError) as exc:
            raise ProviderError(f"Embedding with {self.model_name!r} failed: {exc}") from exc
        return [normalize_l2(vector) for vector in vectors]

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]


def build_embedding_provider(
    backend: str | None = None,
    *,
    cache_dir: str | None = None,
) -> EmbeddingProvider | None:
    """Create the provider named by *backend* (``genai``, ``local`` or ``none``)."""
    name = resolve_embedding_backend(backend)
    if name == "none":
        return None
    if name == "genai":
        return GenAIEmbeddingProvider()
    return SentenceTransformersEmbeddingProvider(cache_dir=cache_dir)
