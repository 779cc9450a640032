"""Paragraph-based chunking strategy."""

import re

from docrag.models import ChunkDraft, ContentType

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_HEADING_LINE = re.compile(r"^=+\s.*\s=+$", re.MULTILINE)

TABLE_MARKERS = ("【表格", "[表格", "[Table")
IMAGE_MARKERS = ("[图片:", "[图片：", "[Image:")
SENTENCE_ENDINGS = frozenset(".。!！?？\n")


def detect_content_type(text: str) -> ContentType:
    """Guess what kind of content a chunk holds from explicit markers."""
    if any(marker in text for marker in TABLE_MARKERS):
        return ContentType.TABLE
    if any(marker in text for marker in IMAGE_MARKERS):
        return ContentType.IMAGE_CAPTION
    if _HEADING_LINE.search(text):
        return ContentType.HEADING
    return ContentType.BODY


def split_long_text(text: str, window: int) -> list[str]:
    """Cut text into pieces of at most ``window`` characters.

    The right edge of each cut snaps back to just after the nearest sentence
    ending in the last 20% of the window, or stays put if there is none.
    """
    pieces = []
    start = 0
    floor = int(window * 0.8)

    while start < len(text):
        end = min(start + window, len(text))

        if end < len(text):
            for i in range(end - 1, start + floor, -1):
                if text[i] in SENTENCE_ENDINGS:
                    end = i + 1
                    break

        piece = text[start:end].strip()
        if piece:
            pieces.append(piece)
        start = end

    return pieces


class ParagraphChunker:
    """Default chunking: merge paragraphs up to a soft limit, re-split above a hard one.

    This strategy balances semantic coherence with provider size limits:
    - Boundaries fall on blank-line paragraph breaks where possible
    - Paragraphs accumulate until the next one would overflow ``soft_limit``
    - Anything still longer than ``hard_limit`` is cut near sentence endings
    """

    SOFT_LIMIT = 800
    HARD_LIMIT = 1000

    def __init__(self, soft_limit: int | None = None, hard_limit: int | None = None):
        self.soft_limit = self.SOFT_LIMIT if soft_limit is None else soft_limit
        self.hard_limit = self.HARD_LIMIT if hard_limit is None else hard_limit
        if self.soft_limit < 1:
            raise ValueError("soft_limit must be positive")
        if self.hard_limit <= self.soft_limit:
            raise ValueError(
                f"hard_limit ({self.hard_limit}) must exceed soft_limit ({self.soft_limit})"
            )

    def chunk(self, text: str) -> list[ChunkDraft]:
        """Split text into chunks with position and content type.

        Args:
            text: The full document text

        Returns:
            List of ChunkDraft objects in document order
        """
        if not text or not text.strip():
            return []

        merged = self._merge_paragraphs(text)

        chunks = []
        for start, end in merged:
            content = text[start:end]
            content_type = detect_content_type(content)

            if len(content) <= self.hard_limit:
                chunks.append(ChunkDraft(content, start, end, content_type))
                continue

            # Sub-chunks keep the parent span; their own offsets are not tracked
            for piece in split_long_text(content, self.soft_limit):
                chunks.append(ChunkDraft(piece, start, end, content_type))

        return chunks

    def _merge_paragraphs(self, text: str) -> list[tuple[int, int]]:
        """Return (start, end) spans of greedily merged paragraphs."""
        spans: list[tuple[int, int]] = []
        buffer_start = buffer_end = -1

        for start, end in self._paragraph_spans(text):
            if buffer_start < 0:
                buffer_start, buffer_end = start, end
            elif end - buffer_start > self.soft_limit:
                spans.append((buffer_start, buffer_end))
                buffer_start, buffer_end = start, end
            else:
                buffer_end = end

        if buffer_start >= 0:
            spans.append((buffer_start, buffer_end))

        return spans

    @staticmethod
    def _paragraph_spans(text: str) -> list[tuple[int, int]]:
        """Trimmed (start, end) spans of every non-blank paragraph."""
        spans = []
        position = 0
        boundaries = [(m.start(), m.end()) for m in _PARAGRAPH_BREAK.finditer(text)]
        boundaries.append((len(text), len(text)))

        for break_start, break_end in boundaries:
            raw = text[position:break_start]
            stripped = raw.strip()
            if stripped:
                start = position + (len(raw) - len(raw.lstrip()))
                spans.append((start, start + len(stripped)))
            position = break_end

        return spans
