"""SQLite storage for documents, chunks and vectors."""

from docrag.storage.store import VectorStore

__all__ = ["VectorStore"]
