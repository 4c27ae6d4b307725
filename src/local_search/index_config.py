"""
Configuration helpers for local index storage.
"""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_DB_PATH = "./.local_search.duckdb"
ENV_DB_PATH = "LOCAL_SEARCH_DB_PATH"

DEFAULT_CACHE_DIR = "~/.cache/local_search"
ENV_CACHE_DIR = "LOCAL_SEARCH_CACHE_DIR"

DEFAULT_LIMIT = 10
ENV_DEFAULT_LIMIT = "LOCAL_SEARCH_DEFAULT_LIMIT"

DEFAULT_EMBEDDING_BACKEND = "local"
ENV_EMBEDDING_BACKEND = "LOCAL_SEARCH_EMBEDDINGS"
EMBEDDING_BACKENDS = ("genai", "local", "none")


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) LOCAL_SEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_cache_dir(override_path: str | None = None) -> str:
    """Resolve and create the model cache directory."""
    raw_path = override_path or os.getenv(ENV_CACHE_DIR) or DEFAULT_CACHE_DIR
    resolved = Path(raw_path).expanduser().resolve()
    resolved.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def resolve_default_limit() -> int:
    raw_value = os.getenv(ENV_DEFAULT_LIMIT)
    if not raw_value:
        return DEFAULT_LIMIT
    try:
        value = int(raw_value)
    except ValueError:
        raise ValueError(f"{ENV_DEFAULT_LIMIT} must be an integer, got {raw_value!r}") from None
    return max(value, 1)


def resolve_embedding_backend(override: str | None = None) -> str:
    """Resolve the embedding backend name from override, env var, or default."""
    name = (override or os.getenv(ENV_EMBEDDING_BACKEND) or DEFAULT_EMBEDDING_BACKEND).lower()
    if name not in EMBEDDING_BACKENDS:
        allowed = ", ".join(EMBEDDING_BACKENDS)
        raise ValueError(f"Unknown embedding backend {name!r}. Allowed: {allowed}")
    return name
