"""Unit tests for the batching embedding client."""

from __future__ import annotations

import numpy as np
import pytest

from conftest import FakeBackend, letter_vector
from docrag.config import Settings
from docrag.embedders import EmbeddingClient
from docrag.errors import IntegrityError, ProviderError


class ShortBackend(FakeBackend):
    """Drops the last vector of every batch."""

    def embed(self, texts: list[str]) -> list[list[float]]:
        return super().embed(texts)[:-1]


class RaggedBackend(FakeBackend):
    def embed(self, texts: list[str]) -> list[list[float]]:
        vectors = super().embed(texts)
        vectors[-1] = vectors[-1][:-1]
        return vectors


def _client(backend: FakeBackend, sleeps: list[float] | None = None, **kwargs) -> EmbeddingClient:
    recorder = sleeps if sleeps is not None else []
    return EmbeddingClient(backend, sleep=recorder.append, **kwargs)


def test_vectors_come_back_in_input_order() -> None:
    texts = [f"text number {i} " + "z" * i for i in range(12)]
    client = _client(FakeBackend(), max_batch_count=5, max_batch_length=400)

    vectors = client.embed(texts)

    assert vectors.shape == (12, 8)
    expected = np.array([letter_vector(t) for t in texts], dtype=np.float32)
    np.testing.assert_array_equal(vectors, expected)


def test_batches_are_sequential_with_fixed_delay() -> None:
    backend = FakeBackend()
    sleeps: list[float] = []
    client = _client(backend, sleeps, max_batch_count=5, max_batch_length=400, batch_delay_seconds=0.2)

    client.embed(["x" * 50] * 12)

    assert [len(call) for call in backend.calls] == [5, 5, 2]
    assert sleeps == [0.2, 0.2]


def test_single_batch_does_not_sleep() -> None:
    sleeps: list[float] = []
    client = _client(FakeBackend(), sleeps, batch_delay_seconds=0.2)
    client.embed(["one", "two"])
    assert sleeps == []


def test_empty_input() -> None:
    backend = FakeBackend()
    assert _client(backend).embed([]).shape[0] == 0
    assert backend.calls == []


def test_failure_stops_remaining_batches() -> None:
    backend = FakeBackend(fail_on_call=2)
    client = _client(backend, max_batch_count=1)

    with pytest.raises(ProviderError):
        client.embed(["a", "b", "c", "d"])
    assert len(backend.calls) == 2


def test_count_mismatch_is_integrity_error() -> None:
    with pytest.raises(IntegrityError, match="vectors for"):
        _client(ShortBackend()).embed(["a", "b"])


def test_mixed_dimensions_is_integrity_error() -> None:
    with pytest.raises(IntegrityError, match="mixed-dimension"):
        _client(RaggedBackend()).embed(["a", "b"])


def test_embed_query_returns_one_vector() -> None:
    vector = _client(FakeBackend()).embed_query("hello")
    assert vector.shape == (8,)


def test_from_settings_copies_limits() -> None:
    config = Settings(
        embedding_api_key="bce-v3/x",
        batch_max_count=16,
        batch_max_length=1000,
        batch_delay_seconds=0.5,
        embedding_model="embedding-v1",
        _env_file=None,
    )
    client = EmbeddingClient.from_settings(config, FakeBackend())
    assert (client.max_batch_count, client.max_batch_length, client.batch_delay_seconds) == (16, 1000, 0.5)
    assert client.model_name == "embedding-v1"
