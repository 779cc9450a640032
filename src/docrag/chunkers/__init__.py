"""Text chunking strategies."""

from docrag.chunkers.paragraph_chunker import ParagraphChunker, detect_content_type, split_long_text

__all__ = ["ParagraphChunker", "detect_content_type", "split_long_text"]
