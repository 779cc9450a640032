"""Data models for docrag."""

from docrag.models.document import (
    ChunkDraft,
    ContentType,
    DocumentStats,
    DocumentSummary,
    EnhancedQuery,
    Match,
    StoredChunk,
)

__all__ = [
    "ChunkDraft",
    "ContentType",
    "DocumentStats",
    "DocumentSummary",
    "EnhancedQuery",
    "Match",
    "StoredChunk",
]
