"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from docrag.config import Settings
from docrag.errors import ProviderError
from docrag.service import RetrievalService
from docrag.storage import VectorStore

DIMENSION = 8


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


def letter_vector(text: str, dimension: int = DIMENSION) -> list[float]:
    """Deterministic bag-of-letters embedding, good enough to rank by overlap."""
    vector = [0.0] * dimension
    for ch in text.lower():
        if ch.isalpha():
            vector[ord(ch) % dimension] += 1.0
    return vector


class FakeBackend:
    """Backend double that records every batch it is sent."""

    name = "fake"

    def __init__(self, dimension: int = DIMENSION, fail_on_call: int | None = None) -> None:
        self.dimension = dimension
        self.fail_on_call = fail_on_call
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise ProviderError("provider rejected batch", status_code=500)
        return [letter_vector(t, self.dimension) for t in texts]


class FakeEmbedder:
    """In-process EmbeddingProvider double."""

    model_name = "fake-embedding"

    def __init__(self, dimension: int = DIMENSION) -> None:
        self.dimension = dimension
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> np.ndarray:
        self.calls.append(list(texts))
        return np.array([letter_vector(t, self.dimension) for t in texts], dtype=np.float32)

    def embed_query(self, text: str) -> np.ndarray:
        return self.embed([text])[0]


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "vector-db" / "documents.db"


@pytest.fixture()
def test_settings(db_path: Path) -> Settings:
    return Settings(
        embedding_api_key="bce-v3/ALTAK-test",
        database_path=str(db_path),
        batch_delay_seconds=0.0,
        _env_file=None,
    )


@pytest.fixture()
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def store(db_path: Path, fake_embedder: FakeEmbedder) -> VectorStore:
    vector_store = VectorStore(db_path, fake_embedder)
    vector_store.initialize()
    return vector_store


@pytest.fixture()
def service(test_settings: Settings, store: VectorStore, fake_embedder: FakeEmbedder) -> RetrievalService:
    return RetrievalService(test_settings, store=store, embedder=fake_embedder)
