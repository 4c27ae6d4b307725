"""
File ingestion into a LocalSearchEngine.

``JsonFileIngestor`` reads JSON files holding a list of document requests;
``RawFileIngestor`` indexes plain text files using their path as the
document path. Both upsert, so re-running an ingestion is safe.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from .engine import LocalSearchEngine
from .models import DocumentRequestList

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".txt",
        ".md",
        ".py",
        ".rs",
        ".js",
        ".ts",
        ".html",
        ".css",
        ".json",
        ".xml",
        ".yaml",
        ".yml",
    }
)


def is_text_file(file_path: Path) -> bool:
    return file_path.suffix.lower() in TEXT_EXTENSIONS


def _iter_files(root: Path, accept: Callable[[Path], bool]) -> list[Path]:
    if not root.exists():
        raise FileNotFoundError(f"No such file or directory: {root}")
    if root.is_file():
        return [root]
    files: list[Path] = []
    for child in sorted(root.iterdir()):
        if child.is_file() and accept(child):
            files.append(child)
        else:
            logger.debug("Skipping %s", child)
    return files


class JsonFileIngestor:
    """Ingest ``[{"path": ..., "content": ..., "metadata": {...}}]`` files."""

    def __init__(self, engine: LocalSearchEngine) -> None:
        self.engine = engine

    def ingest(self, path: str) -> int:
        """Ingest one JSON file or every ``*.json`` file in a directory.

        Returns the number of documents indexed.
        """
        root = Path(path)
        logger.info("Starting JSON ingestion from %s", root)
        indexed = 0
        files = _iter_files(root, lambda file_path: file_path.suffix.lower() == ".json")
        for file_path in files:
            indexed += self._process_file(file_path)
        logger.info("Processed %d JSON files, %d documents.", len(files), indexed)
        return indexed

    def _process_file(self, file_path: Path) -> int:
        data = file_path.read_text(encoding="utf-8")
        try:
            requests = DocumentRequestList.validate_json(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid document file {file_path}: {exc}") from exc
        for request in requests:
            self.engine.upsert(request.path, request.content, request.metadata)
            logger.debug("Indexed %s from %s", request.path, file_path)
        return len(requests)


class RawFileIngestor:
    """Ingest raw text files; the file path becomes the document path."""

    def __init__(self, engine: LocalSearchEngine) -> None:
        self.engine = engine

    def ingest(
        self,
        path: str,
        accept: Callable[[Path], bool] = is_text_file,
    ) -> int:
        root = Path(path)
        logger.info("Starting text ingestion from %s", root)
        files = _iter_files(root, accept)
        for file_path in files:
            content = file_path.read_text(encoding="utf-8", errors="replace")
            self.engine.upsert(str(file_path), content)
            logger.debug("Indexed %s", file_path)
        logger.info("Processed %d files.", len(files))
        return len(files)
