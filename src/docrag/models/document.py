"""Core data models for documents, chunks and search results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

import numpy as np


class ContentType(str, Enum):
    """Coarse content kind of a chunk, guessed from markers in its text."""

    BODY = "body"
    TABLE = "table"
    IMAGE_CAPTION = "image-caption"
    HEADING = "heading"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ContentType"]:
        # Also accept underscore spelling, e.g. "image_caption"
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", "-")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


@dataclass
class ChunkDraft:
    """A chunk of document text waiting to be embedded and stored.

    Offsets are a half-open ``[start_offset, end_offset)`` range into the
    original document text.
    """

    content: str
    start_offset: int
    end_offset: int
    content_type: ContentType = ContentType.BODY

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ChunkDraft":
        """Build a draft from a caller-supplied mapping.

        Accepts ``startOffset``/``start_offset``/``start`` style keys so
        request payloads can be passed straight through.
        """
        content = data.get("content")
        if not isinstance(content, str):
            raise ValueError("chunk mapping needs a string 'content'")
        start = _first_present(data, "startOffset", "start_offset", "start", default=0)
        end = _first_present(data, "endOffset", "end_offset", "end", default=start + len(content))
        raw_type = _first_present(data, "content_type", "contentType", "type", default=ContentType.BODY)
        return cls(
            content=content,
            start_offset=int(start),
            end_offset=int(end),
            content_type=ContentType(raw_type),
        )


def _first_present(data: Mapping[str, Any], *keys: str, default: Any) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


@dataclass
class DocumentSummary:
    """One row of the document listing."""

    id: str
    name: str
    metadata: dict
    created_at: str
    chunk_count: int


@dataclass
class StoredChunk:
    """A persisted chunk together with its vector and owning document."""

    id: str
    document_id: str
    document_name: str
    chunk_index: int
    content: str
    start_offset: int
    end_offset: int
    content_type: ContentType
    vector: np.ndarray


@dataclass
class Match:
    """A ranked search hit."""

    document_id: str
    document_name: str
    content: str
    similarity: float
    chunk_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "documentId": self.document_id,
            "documentName": self.document_name,
            "content": self.content,
            "similarity": self.similarity,
        }


@dataclass
class DocumentStats:
    """Aggregate view of the knowledge base."""

    total_documents: int
    total_chunks: int
    documents: list[DocumentSummary] = field(default_factory=list)


@dataclass
class EnhancedQuery:
    """A user message rewritten to carry retrieved context."""

    message: str
    context: Optional[str] = None
    sources: list[dict] = field(default_factory=list)
    error: Optional[str] = None
