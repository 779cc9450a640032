"""Rate-constrained embedding client sitting on top of an HTTP backend."""

import logging
import time
from typing import Callable

import numpy as np

from docrag.config import Settings
from docrag.embedders.batching import plan_batches
from docrag.errors import IntegrityError
from docrag.protocols import EmbeddingBackend

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Embeds any number of texts while staying inside provider limits.

    Texts are planned into batches (see :func:`plan_batches`) and the
    batches are sent one after another with a fixed pause in between. The
    client never retries; a failed batch fails the whole call.
    """

    def __init__(
        self,
        backend: EmbeddingBackend,
        *,
        model_name: str = "",
        max_batch_count: int = 5,
        max_batch_length: int = 400,
        batch_delay_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the client.

        Args:
            backend: Strategy that performs the actual HTTP request
            model_name: Model identifier recorded alongside stored vectors
            max_batch_count: Most texts per request
            max_batch_length: Most characters per request
            batch_delay_seconds: Pause between consecutive requests
            sleep: Sleep function, replaceable in tests
        """
        self.backend = backend
        self._model_name = model_name or backend.name
        self.max_batch_count = max_batch_count
        self.max_batch_length = max_batch_length
        self.batch_delay_seconds = batch_delay_seconds
        self._sleep = sleep

    @classmethod
    def from_settings(cls, config: Settings, backend: EmbeddingBackend) -> "EmbeddingClient":
        return cls(
            backend,
            model_name=config.embedding_model,
            max_batch_count=config.batch_max_count,
            max_batch_length=config.batch_max_length,
            batch_delay_seconds=config.batch_delay_seconds,
        )

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        return self._model_name

    def embed(self, texts: list[str]) -> np.ndarray:
        """Generate embeddings for a list of texts.

        Args:
            texts: Texts to embed, in order

        Returns:
            numpy array of shape (len(texts), embedding_dim)
        """
        if not texts:
            return np.empty((0, 0), dtype=np.float32)

        batches = plan_batches(texts, self.max_batch_count, self.max_batch_length)
        if len(batches) > 1:
            logger.info("Split %d texts into %d batches", len(texts), len(batches))

        vectors: list[list[float]] = []
        for i, batch in enumerate(batches):
            logger.debug(
                "Batch %d/%d: %d texts (%d chars)",
                i + 1,
                len(batches),
                len(batch),
                batch.total_length,
            )
            batch_vectors = self.backend.embed(batch.texts)
            if len(batch_vectors) != len(batch):
                raise IntegrityError(
                    f"Provider returned {len(batch_vectors)} vectors for {len(batch)} texts"
                )
            vectors.extend(batch_vectors)

            if i < len(batches) - 1 and self.batch_delay_seconds > 0:
                self._sleep(self.batch_delay_seconds)

        dimensions = {len(v) for v in vectors}
        if len(dimensions) != 1 or 0 in dimensions:
            raise IntegrityError(f"Provider returned empty or mixed-dimension vectors: {sorted(dimensions)}")

        return np.asarray(vectors, dtype=np.float32)

    def embed_query(self, text: str) -> np.ndarray:
        """Embed a single query string into a 1-D vector."""
        return self.embed([text])[0]

    def close(self) -> None:
        """Release the backend's HTTP resources."""
        close = getattr(self.backend, "close", None)
        if close is not None:
            close()
