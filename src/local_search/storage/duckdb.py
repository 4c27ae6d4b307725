"""
DuckDB storage backend for index persistence.

One connection backs the three stores: ``documents`` (document store),
``document_embeddings`` (vector store, little-endian float32 blobs) and
``lexical_documents`` / ``lexical_postings`` (a BM25-ranked inverted index).
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

import duckdb

from ..errors import DuplicateKeyError, ReferentialIntegrityError, StorageError
from ..vectors import decode_vector, encode_vector
from .base import DocumentRecord, EmbeddingRecord

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# Okapi BM25 parameters.
BM25_K1 = 1.2
BM25_B = 0.75

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str) -> list[str]:
    """Split text into lowercase word tokens."""
    return _TOKEN_RE.findall(text.lower())


def _query_terms(query: str) -> list[str]:
    unique_terms: list[str] = []
    for term in tokenize(query):
        if term not in unique_terms:
            unique_terms.append(term)
    return unique_terms


class DuckDBStorage:
    """DuckDB-backed persistence for documents, embeddings and the lexical index."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == MEMORY_DB:
            self.db_path = MEMORY_DB
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._conn = self._connect()
        if initialize and not read_only:
            self.initialize()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        with self._storage_errors("open database"):
            conn = duckdb.connect(self.db_path, read_only=self.read_only)
        logger.info("Opened DuckDB storage at %s", self.db_path)
        return conn

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._storage_errors("close database"):
            self._conn.close()

    def refresh(self) -> None:
        """Close and reopen the connection to pick up out-of-band changes.

        The old connection is closed first so that DuckDB drops its cached
        database instance and re-reads the file. In-memory databases have
        no file to re-read, so refresh leaves the connection as it is.
        """
        if self.db_path == MEMORY_DB:
            logger.debug("Skipping refresh of in-memory database.")
            return
        self.close()
        self._conn = self._connect()
        logger.info("Database connection refreshed for %s", self.db_path)

    def initialize(self) -> None:
        with self._storage_errors("create tables"):
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    path VARCHAR PRIMARY KEY,
                    content VARCHAR NOT NULL,
                    metadata_json VARCHAR NOT NULL DEFAULT 'null',
                    created_at DOUBLE NOT NULL,
                    updated_at DOUBLE NOT NULL
                );
                """
            )
            # No FOREIGN KEY clauses: DuckDB rejects updates to referenced
            # parent rows, so integrity is checked in put_vector instead.
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS document_embeddings (
                    path VARCHAR PRIMARY KEY,
                    embedding BLOB NOT NULL
                );
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lexical_documents (
                    path VARCHAR PRIMARY KEY,
                    length INTEGER NOT NULL
                );
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS lexical_postings (
                    path VARCHAR NOT NULL,
                    term VARCHAR NOT NULL,
                    tf INTEGER NOT NULL
                );
                """
            )
        logger.debug("Ensured documents, embeddings and lexical tables exist.")

    # ------------------------------------------------------------------
    # Document store
    # ------------------------------------------------------------------

    def insert_document(self, document: DocumentRecord) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO documents (path, content, metadata_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    document.path,
                    document.content,
                    document.metadata_json,
                    document.created_at,
                    document.updated_at,
                ],
            )
        except duckdb.ConstraintException as exc:
            raise DuplicateKeyError(document.path) from exc
        except duckdb.Error as exc:
            raise StorageError(f"Failed to insert document {document.path!r}: {exc}") from exc

    def update_document(
        self,
        *,
        path: str,
        content: str,
        metadata_json: str,
        updated_at: float,
    ) -> int:
        with self._storage_errors(f"update document {path!r}"):
            rows = self._conn.execute(
                """
                UPDATE documents
                SET content = ?, metadata_json = ?, updated_at = ?
                WHERE path = ?
                RETURNING path
                """,
                [content, metadata_json, updated_at, path],
            ).fetchall()
        return len(rows)

    def delete_document(self, path: str) -> int:
        with self._storage_errors(f"delete document {path!r}"):
            rows = self._conn.execute(
                "DELETE FROM documents WHERE path = ? RETURNING path",
                [path],
            ).fetchall()
        return len(rows)

    def get_document(self, path: str) -> DocumentRecord | None:
        with self._storage_errors(f"read document {path!r}"):
            row = self._conn.execute(
                """
                SELECT path, content, metadata_json, created_at, updated_at
                FROM documents
                WHERE path = ?
                LIMIT 1
                """,
                [path],
            ).fetchone()
        if row is None:
            return None
        return self._row_to_document(row)

    def get_documents(self, paths: Iterable[str]) -> dict[str, DocumentRecord]:
        unique_paths = sorted(set(paths))
        if not unique_paths:
            return {}
        placeholders = ", ".join(["?"] * len(unique_paths))
        with self._storage_errors("read documents"):
            rows = self._conn.execute(
                f"""
                SELECT path, content, metadata_json, created_at, updated_at
                FROM documents
                WHERE path IN ({placeholders})
                """,
                unique_paths,
            ).fetchall()
        return {str(row[0]): self._row_to_document(row) for row in rows}

    def count_documents(self) -> int:
        with self._storage_errors("count documents"):
            row = self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Vector store
    # ------------------------------------------------------------------

    def put_vector(self, path: str, vector: Sequence[float]) -> None:
        with self._storage_errors(f"write embedding for {path!r}"):
            exists = self._conn.execute(
                "SELECT 1 FROM documents WHERE path = ? LIMIT 1",
                [path],
            ).fetchone()
            if exists is None:
                raise ReferentialIntegrityError(path)
            self._conn.execute(
                """
                INSERT INTO document_embeddings (path, embedding)
                VALUES (?, ?)
                ON CONFLICT (path) DO UPDATE SET embedding = excluded.embedding
                """,
                [path, encode_vector(vector)],
            )

    def get_vector(self, path: str) -> list[float] | None:
        with self._storage_errors(f"read embedding for {path!r}"):
            row = self._conn.execute(
                "SELECT embedding FROM document_embeddings WHERE path = ?",
                [path],
            ).fetchone()
        if row is None:
            return None
        return decode_vector(bytes(row[0]))

    def get_all_vectors(self) -> list[EmbeddingRecord]:
        with self._storage_errors("scan embeddings"):
            rows = self._conn.execute(
                "SELECT path, embedding FROM document_embeddings ORDER BY path"
            ).fetchall()
        return [
            EmbeddingRecord(path=str(row[0]), vector=decode_vector(bytes(row[1])))
            for row in rows
        ]

    def delete_vector(self, path: str) -> int:
        with self._storage_errors(f"delete embedding for {path!r}"):
            rows = self._conn.execute(
                "DELETE FROM document_embeddings WHERE path = ? RETURNING path",
                [path],
            ).fetchall()
        return len(rows)

    # ------------------------------------------------------------------
    # Lexical index
    # ------------------------------------------------------------------

    def index_lexical(self, path: str, content: str) -> None:
        tokens = tokenize(content)
        term_counts = Counter(tokens)
        with self._storage_errors(f"index content for {path!r}"):
            self._conn.execute("DELETE FROM lexical_postings WHERE path = ?", [path])
            self._conn.execute(
                """
                INSERT INTO lexical_documents (path, length)
                VALUES (?, ?)
                ON CONFLICT (path) DO UPDATE SET length = excluded.length
                """,
                [path, len(tokens)],
            )
            if term_counts:
                self._conn.executemany(
                    "INSERT INTO lexical_postings (path, term, tf) VALUES (?, ?, ?)",
                    [(path, term, count) for term, count in sorted(term_counts.items())],
                )

    def match_lexical(
        self,
        query: str,
        path_filters: Sequence[str] | None = None,
    ) -> list[tuple[str, float]]:
        """BM25 match requiring every query term (implicit AND)."""
        terms = _query_terms(query)
        if not terms:
            return []

        term_rows = ", ".join(["(CAST(? AS VARCHAR))"] * len(terms))
        path_clause, path_params = self._path_filter_clause("p.path", path_filters)
        sql = f"""
            WITH query_terms(term) AS (VALUES {term_rows}),
            corpus AS (
                SELECT
                    CAST(COUNT(*) AS DOUBLE) AS doc_count,
                    coalesce(nullif(CAST(AVG(length) AS DOUBLE), 0), 1.0) AS avg_length
                FROM lexical_documents
            ),
            term_stats AS (
                SELECT p.term, CAST(COUNT(*) AS DOUBLE) AS doc_freq
                FROM lexical_postings p
                JOIN query_terms q ON q.term = p.term
                GROUP BY p.term
            )
            SELECT
                p.path,
                SUM(
                    ln(1.0 + (c.doc_count - t.doc_freq + 0.5) / (t.doc_freq + 0.5))
                    * CAST(p.tf AS DOUBLE) * {BM25_K1 + 1.0}
                    / (
                        CAST(p.tf AS DOUBLE)
                        + {BM25_K1} * (1.0 - {BM25_B} + {BM25_B} * d.length / c.avg_length)
                    )
                ) AS score
            FROM lexical_postings p
            JOIN term_stats t ON t.term = p.term
            JOIN lexical_documents d ON d.path = p.path
            CROSS JOIN corpus c
            WHERE TRUE {path_clause}
            GROUP BY p.path
            HAVING COUNT(DISTINCT p.term) = ?
            ORDER BY score DESC, p.path ASC
        """
        params: list[Any] = []
        params.extend(terms)
        params.extend(path_params)
        params.append(len(terms))
        with self._storage_errors(f"match query {query!r}"):
            rows = self._conn.execute(sql, params).fetchall()
        logger.debug("Lexical match for %r returned %d candidates.", query, len(rows))
        return [(str(row[0]), float(row[1])) for row in rows]

    def delete_lexical(self, path: str) -> int:
        with self._storage_errors(f"remove {path!r} from lexical index"):
            self._conn.execute("DELETE FROM lexical_postings WHERE path = ?", [path])
            rows = self._conn.execute(
                "DELETE FROM lexical_documents WHERE path = ? RETURNING path",
                [path],
            ).fetchall()
        return len(rows)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Delete every row, child tables first."""
        with self._storage_errors("clear database"):
            self._conn.execute("DELETE FROM lexical_postings")
            self._conn.execute("DELETE FROM lexical_documents")
            self._conn.execute("DELETE FROM document_embeddings")
            self._conn.execute("DELETE FROM documents")

    @staticmethod
    def _row_to_document(row: tuple[Any, ...]) -> DocumentRecord:
        return DocumentRecord(
            path=str(row[0]),
            content=str(row[1]),
            metadata_json=str(row[2]),
            created_at=float(row[3]),
            updated_at=float(row[4]),
        )

    @staticmethod
    def _path_filter_clause(
        column: str,
        path_filters: Sequence[str] | None,
    ) -> tuple[str, list[Any]]:
        substrings = [item for item in (path_filters or []) if item]
        if not substrings:
            return "", []
        conditions = " OR ".join([f"contains({column}, ?)"] * len(substrings))
        return f"AND ({conditions})", list(substrings)

    @staticmethod
    @contextmanager
    def _storage_errors(action: str) -> Iterator[None]:
        try:
            yield
        except duckdb.Error as exc:
            raise StorageError(f"Failed to {action}: {exc}") from exc
