"""Embedding providers for vector generation."""

from docrag.embedders.backends import DirectKeyBackend, TokenExchangeBackend, create_backend
from docrag.embedders.batching import Batch, plan_batches
from docrag.embedders.client import EmbeddingClient
from docrag.embedders.credentials import AccessTokenManager

__all__ = [
    "AccessTokenManager",
    "Batch",
    "DirectKeyBackend",
    "EmbeddingClient",
    "TokenExchangeBackend",
    "create_backend",
    "plan_batches",
]
