"""Tests for JSON and raw text ingestion."""

import json
from pathlib import Path

import pytest

from local_search import LocalSearchEngine, SearchMode
from local_search.ingest import JsonFileIngestor, RawFileIngestor, is_text_file


def _write_json(path: Path, documents: list[dict]) -> None:
    path.write_text(json.dumps(documents), encoding="utf-8")


def test_json_ingestion_from_single_file(
    tmp_path: Path, lexical_engine: LocalSearchEngine
) -> None:
    source = tmp_path / "docs.json"
    _write_json(
        source,
        [
            {"path": "notes/one.md", "content": "gardening tips", "metadata": {"tag": "home"}},
            {"path": "notes/two.md", "content": "gardening tools"},
        ],
    )

    count = JsonFileIngestor(lexical_engine).ingest(str(source))

    assert count == 2
    assert lexical_engine.stats() == 5
    results = lexical_engine.search("gardening tips", SearchMode.LEXICAL)
    assert [r.path for r in results] == ["notes/one.md"]
    assert results[0].metadata == {"tag": "home"}


def test_json_ingestion_from_directory_only_reads_json(
    tmp_path: Path, lexical_engine: LocalSearchEngine
) -> None:
    _write_json(tmp_path / "a.json", [{"path": "x.txt", "content": "alpha"}])
    _write_json(tmp_path / "b.json", [{"path": "y.txt", "content": "beta"}])
    (tmp_path / "readme.txt").write_text("not a document list", encoding="utf-8")

    count = JsonFileIngestor(lexical_engine).ingest(str(tmp_path))

    assert count == 2
    assert lexical_engine.storage.get_document("x.txt") is not None
    assert lexical_engine.storage.get_document("y.txt") is not None


def test_json_ingestion_is_repeatable(
    tmp_path: Path, lexical_engine: LocalSearchEngine
) -> None:
    source = tmp_path / "docs.json"
    _write_json(source, [{"path": "a.txt", "content": "rewritten body"}])

    ingestor = JsonFileIngestor(lexical_engine)
    ingestor.ingest(str(source))
    ingestor.ingest(str(source))

    assert lexical_engine.stats() == 3
    assert lexical_engine.storage.get_document("a.txt").content == "rewritten body"


def test_json_ingestion_rejects_invalid_documents(
    tmp_path: Path, lexical_engine: LocalSearchEngine
) -> None:
    source = tmp_path / "bad.json"
    _write_json(source, [{"content": "missing a path"}])

    with pytest.raises(ValueError, match="Invalid document file"):
        JsonFileIngestor(lexical_engine).ingest(str(source))

    assert lexical_engine.stats() == 3


def test_ingestion_of_missing_path_raises(
    tmp_path: Path, lexical_engine: LocalSearchEngine
) -> None:
    with pytest.raises(FileNotFoundError):
        JsonFileIngestor(lexical_engine).ingest(str(tmp_path / "nowhere"))


def test_raw_ingestion_uses_file_path_as_document_path(
    tmp_path: Path, lexical_engine: LocalSearchEngine
) -> None:
    (tmp_path / "guide.md").write_text("volcano hiking guide", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / "nested").mkdir()

    count = RawFileIngestor(lexical_engine).ingest(str(tmp_path))

    assert count == 1
    results = lexical_engine.search("volcano", SearchMode.LEXICAL)
    assert [r.path for r in results] == [str(tmp_path / "guide.md")]


def test_is_text_file_checks_extension() -> None:
    assert is_text_file(Path("README.MD"))
    assert is_text_file(Path("src/lib.rs"))
    assert not is_text_file(Path("photo.jpeg"))
