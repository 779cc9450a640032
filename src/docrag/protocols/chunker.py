"""Protocol for text chunking strategies."""

from typing import Protocol, runtime_checkable

from docrag.models import ChunkDraft


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Protocol for text chunking strategies.

    Different strategies can be used for different content types.
    """

    def chunk(self, text: str) -> list[ChunkDraft]:
        """Split text into chunks with offsets and content type."""
        ...
