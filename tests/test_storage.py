"""Tests for the DuckDB storage backend."""

import struct
from pathlib import Path

import pytest

from local_search.errors import DuplicateKeyError, ReferentialIntegrityError
from local_search.storage import DocumentRecord, DuckDBStorage, tokenize


def _doc(path: str, content: str, *, metadata_json: str = "null") -> DocumentRecord:
    return DocumentRecord(
        path=path,
        content=content,
        metadata_json=metadata_json,
        created_at=100.0,
        updated_at=100.0,
    )


def _seed_lexical(storage: DuckDBStorage) -> None:
    for path, content in {
        "a.txt": "rust systems programming",
        "b.txt": "python programming language",
        "c.txt": "cooking recipes",
    }.items():
        storage.insert_document(_doc(path, content))
        storage.index_lexical(path, content)


def test_tokenize_lowercases_word_tokens() -> None:
    assert tokenize("Rust, SYSTEMS-programming!") == ["rust", "systems", "programming"]
    assert tokenize("  ") == []


def test_document_round_trip_and_count(storage: DuckDBStorage) -> None:
    storage.insert_document(_doc("notes/a.md", "hello", metadata_json='{"k": "v"}'))

    record = storage.get_document("notes/a.md")

    assert record == _doc("notes/a.md", "hello", metadata_json='{"k": "v"}')
    assert storage.get_document("missing") is None
    assert storage.count_documents() == 1
    assert set(storage.get_documents(["notes/a.md", "missing"])) == {"notes/a.md"}
    assert storage.get_documents([]) == {}


def test_insert_duplicate_path_raises(storage: DuckDBStorage) -> None:
    storage.insert_document(_doc("a.txt", "first"))

    with pytest.raises(DuplicateKeyError):
        storage.insert_document(_doc("a.txt", "second"))

    assert storage.get_document("a.txt").content == "first"
    assert storage.count_documents() == 1


def test_update_and_delete_report_affected_rows(storage: DuckDBStorage) -> None:
    assert storage.update_document(
        path="a.txt", content="x", metadata_json="null", updated_at=1.0
    ) == 0

    storage.insert_document(_doc("a.txt", "first"))
    assert storage.update_document(
        path="a.txt", content="second", metadata_json="null", updated_at=200.0
    ) == 1
    record = storage.get_document("a.txt")
    assert record.content == "second"
    assert record.created_at == 100.0
    assert record.updated_at == 200.0

    assert storage.delete_document("a.txt") == 1
    assert storage.delete_document("a.txt") == 0


def test_put_vector_requires_document(storage: DuckDBStorage) -> None:
    with pytest.raises(ReferentialIntegrityError):
        storage.put_vector("ghost.txt", [1.0, 0.0])

    assert storage.get_all_vectors() == []


def test_vectors_are_stored_as_little_endian_float32(storage: DuckDBStorage) -> None:
    storage.insert_document(_doc("a.txt", "x"))
    storage.put_vector("a.txt", [0.6, 0.8])

    blob = storage._conn.execute(
        "SELECT embedding FROM document_embeddings WHERE path = ?", ["a.txt"]
    ).fetchone()[0]

    assert bytes(blob) == struct.pack("<2f", 0.6, 0.8)
    assert storage.get_vector("a.txt") == pytest.approx([0.6, 0.8])


def test_put_vector_overwrites_and_delete_removes(storage: DuckDBStorage) -> None:
    storage.insert_document(_doc("a.txt", "x"))
    storage.insert_document(_doc("b.txt", "y"))
    storage.put_vector("b.txt", [0.0, 1.0])
    storage.put_vector("a.txt", [1.0, 0.0])
    storage.put_vector("a.txt", [0.0, 1.0])

    records = storage.get_all_vectors()

    assert [record.path for record in records] == ["a.txt", "b.txt"]
    assert records[0].vector == pytest.approx([0.0, 1.0])
    assert storage.delete_vector("a.txt") == 1
    assert storage.delete_vector("a.txt") == 0
    assert storage.get_vector("a.txt") is None


def test_match_lexical_scores_matching_documents(storage: DuckDBStorage) -> None:
    _seed_lexical(storage)

    matches = dict(storage.match_lexical("programming"))

    assert set(matches) == {"a.txt", "b.txt"}
    assert all(score > 0 for score in matches.values())
    assert matches["a.txt"] == pytest.approx(matches["b.txt"])


def test_match_lexical_requires_every_term(storage: DuckDBStorage) -> None:
    _seed_lexical(storage)

    assert [path for path, _ in storage.match_lexical("Rust programming")] == ["a.txt"]
    assert storage.match_lexical("rust cooking") == []
    assert storage.match_lexical("   ") == []


def test_match_lexical_prefers_higher_term_frequency(storage: DuckDBStorage) -> None:
    storage.insert_document(_doc("many.txt", "graph graph graph theory"))
    storage.index_lexical("many.txt", "graph graph graph theory")
    storage.insert_document(_doc("once.txt", "graph databases and more theory"))
    storage.index_lexical("once.txt", "graph databases and more theory")
    storage.insert_document(_doc("other.txt", "unrelated words"))
    storage.index_lexical("other.txt", "unrelated words")

    ranked = storage.match_lexical("graph")

    assert [path for path, _ in ranked] == ["many.txt", "once.txt"]
    assert ranked[0][1] > ranked[1][1]


def test_match_lexical_pushes_down_path_filters(storage: DuckDBStorage) -> None:
    _seed_lexical(storage)

    assert [p for p, _ in storage.match_lexical("programming", ["a"])] == ["a.txt"]
    assert {p for p, _ in storage.match_lexical("programming", ["a.", "b."])} == {
        "a.txt",
        "b.txt",
    }
    assert storage.match_lexical("programming", ["zzz"]) == []
    # Substring semantics, not LIKE wildcards.
    assert storage.match_lexical("programming", ["%"]) == []


def test_index_lexical_replaces_previous_entry(storage: DuckDBStorage) -> None:
    _seed_lexical(storage)

    storage.index_lexical("a.txt", "gardening tips")

    assert [p for p, _ in storage.match_lexical("programming")] == ["b.txt"]
    assert [p for p, _ in storage.match_lexical("gardening")] == ["a.txt"]
    assert storage.delete_lexical("a.txt") == 1
    assert storage.match_lexical("gardening") == []


def test_clear_removes_everything(storage: DuckDBStorage) -> None:
    _seed_lexical(storage)
    storage.put_vector("a.txt", [1.0])

    storage.clear()

    assert storage.count_documents() == 0
    assert storage.get_all_vectors() == []
    assert storage.match_lexical("programming") == []


def test_refresh_reopens_connection(storage: DuckDBStorage) -> None:
    storage.insert_document(_doc("a.txt", "x"))

    storage.refresh()

    assert storage.count_documents() == 1
    storage.insert_document(_doc("b.txt", "y"))
    assert storage.count_documents() == 2


def test_refresh_picks_up_replaced_database_file(tmp_path: Path) -> None:
    live_path = tmp_path / "live.duckdb"
    other_path = tmp_path / "other.duckdb"

    other = DuckDBStorage(str(other_path))
    other.insert_document(_doc("x.txt", "x"))
    other.insert_document(_doc("y.txt", "y"))
    other.close()

    live = DuckDBStorage(str(live_path))
    live.insert_document(_doc("only.txt", "z"))
    live.close()
    # Replace the backing file while no connection is open, then reopen.
    other_path.replace(live_path)

    live.refresh()
    try:
        assert live.count_documents() == 2
        assert live.get_document("only.txt") is None
    finally:
        live.close()


def test_in_memory_database() -> None:
    storage = DuckDBStorage(":memory:")
    try:
        storage.insert_document(_doc("a.txt", "hello world"))
        storage.index_lexical("a.txt", "hello world")
        assert storage.db_path == ":memory:"
        assert [p for p, _ in storage.match_lexical("hello")] == ["a.txt"]
    finally:
        storage.close()


def test_refresh_is_a_no_op_for_in_memory_database() -> None:
    storage = DuckDBStorage(":memory:")
    try:
        storage.insert_document(_doc("a.txt", "hello"))

        storage.refresh()

        assert storage.count_documents() == 1
        assert storage.get_document("a.txt").content == "hello"
    finally:
        storage.close()
