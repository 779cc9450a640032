"""Protocol definitions for extensible components."""

from docrag.protocols.chunker import ChunkingStrategy
from docrag.protocols.embedder import EmbeddingBackend, EmbeddingProvider

__all__ = ["ChunkingStrategy", "EmbeddingBackend", "EmbeddingProvider"]
