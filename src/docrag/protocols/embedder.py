"""Protocols for embedding providers and the HTTP backends behind them."""

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class EmbeddingBackend(Protocol):
    """One way of talking to the embedding provider.

    A backend sends exactly the texts it is given in a single request.
    Batching, pacing and validation happen in the client above it.
    """

    @property
    def name(self) -> str:
        """Return identifier for the authentication strategy."""
        ...

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed one batch of texts, one vector per text, in order."""
        ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for anything the store can embed chunk texts with.

    Allows swapping the HTTP-backed client for an in-process model or a
    test double.
    """

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def embed(self, texts: list[str]) -> np.ndarray:
        """Generate embeddings for a list of texts.

        Returns: numpy array of shape (len(texts), embedding_dim)
        """
        ...

    def embed_query(self, text: str) -> np.ndarray:
        """Embed a single query string into a 1-D vector."""
        ...
