"""
Retrieval façade coordinating the document store, vector store and lexical index.

Writes fan out to the three stores in a fixed order with no transaction
spanning them. A failure aborts the remaining steps and is raised as-is;
nothing already written is rolled back. ``upsert`` is safe to retry,
``insert`` is not.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Iterable, Mapping

from .embeddings import EmbeddingProvider
from .index_config import resolve_db_path, resolve_default_limit
from .search import IndexedQueryEngine, SearchMode, SearchResult
from .storage import DocumentRecord, DuckDBStorage, StorageBackend
from .vectors import normalize_l2

logger = logging.getLogger(__name__)


class LocalSearchEngine:
    """Hybrid lexical + semantic document index."""

    def __init__(
        self,
        storage: StorageBackend,
        embedding_provider: EmbeddingProvider | None = None,
        *,
        default_limit: int | None = None,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider
        self._query_engine = IndexedQueryEngine(
            storage,
            embedding_provider,
            default_limit=default_limit or resolve_default_limit(),
        )

    @classmethod
    def open(
        cls,
        db_path: str | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        *,
        read_only: bool = False,
    ) -> "LocalSearchEngine":
        """Open (creating if needed) a DuckDB-backed engine."""
        storage = DuckDBStorage(resolve_db_path(db_path), read_only=read_only)
        return cls(storage, embedding_provider)

    def __enter__(self) -> "LocalSearchEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.storage.close()

    @property
    def has_semantic(self) -> bool:
        return self.embedding_provider is not None

    def insert(
        self,
        path: str,
        content: str,
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Insert a new document. Raises DuplicateKeyError if *path* exists."""
        now = time.time()
        self.storage.insert_document(
            DocumentRecord(
                path=path,
                content=content,
                metadata_json=_dump_metadata(metadata),
                created_at=now,
                updated_at=now,
            )
        )
        logger.debug("Inserted document %s", path)

        if self.embedding_provider is not None:
            self._write_embedding(self.embedding_provider, path, content)

        self.storage.index_lexical(path, content)
        logger.debug("Indexed lexical entry for %s", path)

    def upsert(
        self,
        path: str,
        content: str,
        metadata: Mapping[str, str] | None = None,
    ) -> None:
        """Update *path* in place, or insert it when it does not exist."""
        previous = self.storage.get_document(path)
        updated = self.storage.update_document(
            path=path,
            content=content,
            metadata_json=_dump_metadata(metadata),
            updated_at=time.time(),
        )
        if updated == 0:
            logger.debug("Document %s did not exist; inserting.", path)
            self.insert(path, content, metadata)
            return
        logger.debug("Updated document %s (%d rows).", path, updated)

        content_changed = previous is None or previous.content != content
        if self.embedding_provider is not None and (
            content_changed or self.storage.get_vector(path) is None
        ):
            self._write_embedding(self.embedding_provider, path, content)

        self.storage.index_lexical(path, content)
        logger.debug("Re-indexed lexical entry for %s", path)

    def delete(self, path: str) -> None:
        """Remove *path* from every store. Missing paths are not an error."""
        self.storage.delete_vector(path)
        self.storage.delete_lexical(path)
        removed = self.storage.delete_document(path)
        if removed:
            logger.debug("Deleted document %s", path)
        else:
            logger.debug("Delete of missing document %s was a no-op.", path)

    def stats(self) -> int:
        """Return the number of indexed documents."""
        count = self.storage.count_documents()
        logger.info("Total documents indexed: %d", count)
        return count

    def refresh(self) -> None:
        """Reopen the storage handle to pick up on-disk changes."""
        self.storage.refresh()

    def search(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.HYBRID,
        limit: int | None = None,
        path_filters: Iterable[str] | None = None,
    ) -> list[SearchResult]:
        return self._query_engine.search(
            query=query,
            mode=mode,
            limit=limit,
            path_filters=path_filters,
        )

    def _write_embedding(
        self, provider: EmbeddingProvider, path: str, content: str
    ) -> None:
        vector = normalize_l2(provider.embed(content))
        self.storage.put_vector(path, vector)
        logger.debug("Stored %d-dim embedding for %s", len(vector), path)


def _dump_metadata(metadata: Mapping[str, str] | None) -> str:
    if metadata is None:
        return json.dumps(None)
    return json.dumps({str(key): str(value) for key, value in metadata.items()}, sort_keys=True)
