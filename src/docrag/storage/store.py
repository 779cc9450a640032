"""SQLite-backed storage for documents, chunks and their vectors."""

import json
import logging
import sqlite3
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional, Union

import numpy as np

from docrag.errors import ConfigurationError, IntegrityError, StorageError
from docrag.models import ChunkDraft, ContentType, DocumentSummary, StoredChunk
from docrag.protocols import EmbeddingProvider
from docrag.storage.schema import SCHEMA

logger = logging.getLogger(__name__)

VECTOR_DTYPE = np.dtype("<f4")

ChunkLike = Union[ChunkDraft, Mapping[str, Any]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def encode_vector(vector: np.ndarray) -> bytes:
    """Serialize a vector as little-endian float32 bytes."""
    return np.asarray(vector, dtype=VECTOR_DTYPE).tobytes()


def decode_vector(blob: bytes) -> np.ndarray:
    """Inverse of :func:`encode_vector`."""
    return np.frombuffer(blob, dtype=VECTOR_DTYPE)


class VectorStore:
    """Durable, transactional storage of documents, chunks and vectors.

    Every public method runs in its own connection and transaction, so a
    failure anywhere inside a write leaves nothing behind.
    """

    def __init__(
        self,
        path: Union[Path, str],
        embedder: Optional[EmbeddingProvider] = None,
        *,
        timeout: float = 30.0,
    ):
        self.path = Path(path)
        self.embedder = embedder
        self.timeout = timeout
        self._initialized = False

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a single transaction."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, timeout=self.timeout)
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot open database {self.path}: {exc}") from exc

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            if not self._initialized:
                conn.executescript(SCHEMA)
                self._initialized = True
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(f"Storage transaction failed: {exc}") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create schema if not exists."""
        self._initialized = False
        with self.connection():
            pass

    # Writes

    def ingest(
        self,
        name: str,
        chunks: Iterable[ChunkLike],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Embed chunk texts and store the document atomically.

        Args:
            name: Display name of the document
            chunks: Ordered chunks (ChunkDraft objects or mappings)
            metadata: Free-form key/value data stored as JSON

        Returns:
            The new document ID
        """
        if self.embedder is None:
            raise ConfigurationError("VectorStore.ingest needs an embedder")

        drafts = [_as_draft(c) for c in chunks]
        if not drafts:
            raise ValueError("Cannot ingest a document without chunks")

        started = time.perf_counter()
        document_id = uuid.uuid4().hex
        logger.info("Ingesting %r (%d chunks)", name, len(drafts))

        vectors = self.embedder.embed([d.content for d in drafts])
        self.add_document(
            name,
            drafts,
            vectors,
            metadata,
            document_id=document_id,
            model_name=self.embedder.model_name,
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Stored %r as %s: %d chunks in %.0fms (%.0fms/chunk)",
            name,
            document_id,
            len(drafts),
            elapsed_ms,
            elapsed_ms / len(drafts),
        )
        return document_id

    def add_document(
        self,
        name: str,
        chunks: Iterable[ChunkLike],
        vectors: Any,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        document_id: Optional[str] = None,
        model_name: Optional[str] = None,
    ) -> str:
        """Write a document with pre-computed vectors in one transaction."""
        drafts = [_as_draft(c) for c in chunks]
        if not drafts:
            raise ValueError("Cannot store a document without chunks")
        _check_offsets(drafts)

        matrix = np.asarray(vectors, dtype=VECTOR_DTYPE)
        if matrix.ndim != 2 or matrix.shape[0] != len(drafts):
            raise IntegrityError(
                f"Got {matrix.shape[0] if matrix.ndim else 0} vectors for {len(drafts)} chunks"
            )
        dimension = int(matrix.shape[1])
        if dimension == 0:
            raise IntegrityError("Vectors have zero dimensions")

        document_id = document_id or uuid.uuid4().hex
        created_at = _now()

        with self.connection() as conn:
            self._claim_dimension(conn, dimension, model_name)
            conn.execute(
                "INSERT INTO documents (id, name, metadata, created_at) VALUES (?, ?, ?, ?)",
                (
                    document_id,
                    name,
                    json.dumps(dict(metadata or {}), ensure_ascii=False, default=str),
                    created_at,
                ),
            )
            conn.executemany(
                """INSERT INTO document_chunks
                   (id, document_id, chunk_index, content, start_pos, end_pos,
                    content_type, vector_data, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        uuid.uuid4().hex,
                        document_id,
                        index,
                        draft.content,
                        draft.start_offset,
                        draft.end_offset,
                        draft.content_type.value,
                        encode_vector(vector),
                        created_at,
                    )
                    for index, (draft, vector) in enumerate(zip(drafts, matrix))
                ],
            )

        return document_id

    def delete_document(self, document_id: str) -> bool:
        """Remove a document and all its chunks.

        Returns:
            True if a document was removed, False if the ID was unknown
        """
        with self.connection() as conn:
            conn.execute("DELETE FROM document_chunks WHERE document_id = ?", (document_id,))
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted document %s", document_id)
        return deleted

    def clear(self) -> int:
        """Remove every document and chunk; returns the number of documents removed."""
        with self.connection() as conn:
            count = conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0]
            conn.execute("DELETE FROM document_chunks")
            conn.execute("DELETE FROM documents")
            conn.execute(
                "DELETE FROM store_info WHERE key IN ('embedding_dimension', 'embedding_model')"
            )
        logger.info("Cleared %d documents", count)
        return count

    def set_info(self, key: str, value: str) -> None:
        """Store a store-level key-value pair."""
        with self.connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO store_info (key, value) VALUES (?, ?)",
                (key, value),
            )

    # Reads

    def get_info(self, key: str) -> Optional[str]:
        """Retrieve a store-level value by key."""
        with self.connection() as conn:
            row = conn.execute("SELECT value FROM store_info WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    @property
    def embedding_dimension(self) -> Optional[int]:
        value = self.get_info("embedding_dimension")
        return int(value) if value is not None else None

    def list_documents(self) -> list[DocumentSummary]:
        """All documents with their chunk counts, newest first."""
        with self.connection() as conn:
            cursor = conn.execute(
                """SELECT d.id, d.name, d.metadata, d.created_at, COUNT(c.id) AS chunk_count
                   FROM documents d
                   LEFT JOIN document_chunks c ON d.id = c.document_id
                   GROUP BY d.id
                   ORDER BY d.created_at DESC, d.rowid DESC"""
            )
            return [_summary(row) for row in cursor]

    def get_document(self, document_id: str) -> Optional[DocumentSummary]:
        with self.connection() as conn:
            row = conn.execute(
                """SELECT d.id, d.name, d.metadata, d.created_at, COUNT(c.id) AS chunk_count
                   FROM documents d
                   LEFT JOIN document_chunks c ON d.id = c.document_id
                   WHERE d.id = ?
                   GROUP BY d.id""",
                (document_id,),
            ).fetchone()
            return _summary(row) if row else None

    def count_chunks(self) -> int:
        with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM document_chunks").fetchone()[0]

    def all_chunks_with_vectors(self) -> list[StoredChunk]:
        """Full scan of every chunk with its vector, in insertion order."""
        with self.connection() as conn:
            cursor = conn.execute(
                """SELECT c.id, c.document_id, d.name AS document_name, c.chunk_index,
                          c.content, c.start_pos, c.end_pos, c.content_type, c.vector_data
                   FROM document_chunks c
                   JOIN documents d ON c.document_id = d.id
                   ORDER BY c.rowid"""
            )
            return [
                StoredChunk(
                    id=row["id"],
                    document_id=row["document_id"],
                    document_name=row["document_name"],
                    chunk_index=row["chunk_index"],
                    content=row["content"],
                    start_offset=row["start_pos"],
                    end_offset=row["end_pos"],
                    content_type=ContentType(row["content_type"]),
                    vector=decode_vector(row["vector_data"]),
                )
                for row in cursor
            ]

    # Internals

    @staticmethod
    def _claim_dimension(conn: sqlite3.Connection, dimension: int, model_name: Optional[str]) -> None:
        """Record the store's vector dimension, or check against the recorded one."""
        conn.execute(
            "INSERT OR IGNORE INTO store_info (key, value) VALUES ('embedding_dimension', ?)",
            (str(dimension),),
        )
        if model_name:
            conn.execute(
                "INSERT OR IGNORE INTO store_info (key, value) VALUES ('embedding_model', ?)",
                (model_name,),
            )
        stored = conn.execute(
            "SELECT value FROM store_info WHERE key = 'embedding_dimension'"
        ).fetchone()["value"]
        if int(stored) != dimension:
            raise IntegrityError(
                f"Vector dimension {dimension} does not match store dimension {stored}"
            )


def _as_draft(chunk: ChunkLike) -> ChunkDraft:
    if isinstance(chunk, ChunkDraft):
        return chunk
    return ChunkDraft.from_mapping(chunk)


def _check_offsets(drafts: list[ChunkDraft]) -> None:
    previous_start = 0
    for index, draft in enumerate(drafts):
        if draft.start_offset < previous_start or draft.end_offset < draft.start_offset:
            raise ValueError(
                f"Chunk {index} has offsets [{draft.start_offset}, {draft.end_offset}) "
                "out of document order"
            )
        previous_start = draft.start_offset


def _summary(row: sqlite3.Row) -> DocumentSummary:
    return DocumentSummary(
        id=row["id"],
        name=row["name"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        created_at=row["created_at"],
        chunk_count=row["chunk_count"],
    )
