import re
from pathlib import Path

import pytest

from local_search import LocalSearchEngine
from local_search.errors import ProviderError
from local_search.storage import DuckDBStorage


# Words mapped onto concept dimensions so that synonyms embed identically.
CONCEPTS = {
    "cooking": 0,
    "recipes": 0,
    "food": 0,
    "programming": 1,
    "coding": 1,
    "rust": 2,
    "python": 3,
    "systems": 4,
    "language": 5,
}
DIM = 6

CORPUS = {
    "a.txt": "rust systems programming",
    "b.txt": "python programming language",
    "c.txt": "cooking recipes",
}


class KeywordEmbeddingProvider:
    """Deterministic bag-of-concepts embeddings. Output is deliberately unnormalized."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * DIM
        for word in re.findall(r"\w+", text.lower()):
            if word in CONCEPTS:
                vector[CONCEPTS[word]] += 1.0
        return vector

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed(text) for text in texts]


class FailingEmbeddingProvider:
    def embed(self, text: str) -> list[float]:  # noqa: ARG002
        raise ProviderError("model runtime unavailable")

    def embed_batch(self, texts: list[str]) -> list[list[float]]:  # noqa: ARG002
        raise ProviderError("model runtime unavailable")


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "index.duckdb")


@pytest.fixture
def storage(db_path: str):
    backend = DuckDBStorage(db_path)
    yield backend
    backend.close()


@pytest.fixture
def provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def engine(storage: DuckDBStorage, provider: KeywordEmbeddingProvider) -> LocalSearchEngine:
    search_engine = LocalSearchEngine(storage, provider)
    for path, content in CORPUS.items():
        search_engine.insert(path, content)
    return search_engine


@pytest.fixture
def lexical_engine(storage: DuckDBStorage) -> LocalSearchEngine:
    search_engine = LocalSearchEngine(storage)
    for path, content in CORPUS.items():
        search_engine.insert(path, content)
    return search_engine
