"""Retrieval orchestrator: the entry point used by the application layer.

Usage::

    from docrag.service import RetrievalService

    service = RetrievalService()
    doc_id = service.ingest_text("handbook", text, {"source": "handbook.docx"})
    for match in service.retrieve_top_matches("How are refunds handled?", k=3):
        print(f"[{match.similarity:.4f}] {match.content[:60]}")
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Mapping

import httpx

from docrag.chunkers import ParagraphChunker
from docrag.config import Settings, settings
from docrag.embedders import EmbeddingClient, create_backend
from docrag.errors import ConfigurationError, DocRagError, ServiceUnavailableError
from docrag.models import ChunkDraft, DocumentStats, DocumentSummary, EnhancedQuery, Match
from docrag.protocols import ChunkingStrategy, EmbeddingProvider
from docrag.rankers import CosineRanker
from docrag.storage import VectorStore

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Answer the user's question using the following document excerpts:

{context}

User question: {question}

Base your answer on the excerpts above. If they do not contain the answer, say so and give a general answer instead."""

PREVIEW_CHARS = 100


class RetrievalService:
    """Composes chunker, embedding client, store and ranker.

    Parameters
    ----------
    config:
        Settings to build default components from; the module-level
        ``settings`` singleton when omitted.
    store, embedder, chunker, ranker:
        Explicit components, mainly for tests. Anything left out is built
        from ``config``.
    http_client:
        Shared ``httpx.Client`` for the embedding backend.

    If the embedding credentials are missing or incomplete the service
    still constructs, logs the problem, and then refuses every call with
    :class:`ServiceUnavailableError`.
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        store: VectorStore | None = None,
        embedder: EmbeddingProvider | None = None,
        chunker: ChunkingStrategy | None = None,
        ranker: CosineRanker | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config or settings
        self.chunker = chunker or ParagraphChunker(
            self.config.chunk_soft_limit, self.config.chunk_hard_limit
        )
        self.ranker = ranker or CosineRanker()
        self.unavailable_reason: str | None = None
        self._owned_embedder: EmbeddingClient | None = None

        if embedder is None:
            try:
                backend = create_backend(self.config, http_client=http_client)
            except ConfigurationError as exc:
                logger.error("Embedding service initialisation failed: %s", exc)
                logger.warning("Retrieval is disabled until the configuration is fixed")
                self.unavailable_reason = str(exc)
            else:
                embedder = EmbeddingClient.from_settings(self.config, backend)
                self._owned_embedder = embedder
        self.embedder = embedder

        if store is None:
            store = VectorStore(self.config.database_path, embedder)
        elif store.embedder is None:
            store.embedder = embedder
        self.store = store

    @property
    def available(self) -> bool:
        return self.unavailable_reason is None

    def close(self) -> None:
        """Release HTTP clients created for the default embedder."""
        if self._owned_embedder is not None:
            self._owned_embedder.close()

    def __enter__(self) -> RetrievalService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- public API -----------------------------------------------------------

    def ingest_document(
        self,
        name: str,
        chunks: Iterable[ChunkDraft | Mapping[str, Any]],
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        """Embed and store pre-chunked text as one document.

        Either every chunk lands with its vector or nothing is stored.

        Returns
        -------
        str
            The new document ID.
        """
        self._require_available()
        return self.store.ingest(name, chunks, metadata)

    def ingest_text(
        self,
        name: str,
        text: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> str:
        """Chunk raw text with the configured chunker, then ingest it."""
        self._require_available()
        chunks = self.chunker.chunk(text)
        if not chunks:
            raise ValueError(f"Document {name!r} has no text to ingest")

        logger.info("Chunked %r: %d chars -> %d chunks", name, len(text), len(chunks))
        merged = {**(metadata or {}), "chunk_count": len(chunks), "extracted_size": len(text)}
        return self.store.ingest(name, chunks, merged)

    def retrieve_top_matches(self, query: str, k: int | None = None) -> list[Match]:
        """Return the ``k`` stored chunks most similar to ``query``.

        An empty store yields an empty list.
        """
        self._require_available()
        k = self.config.default_top_k if k is None else k
        if k < 1:
            raise ValueError("k must be at least 1")
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        started = time.perf_counter()
        query_vector = self.embedder.embed_query(query)  # type: ignore[union-attr]
        embedded = time.perf_counter()

        candidates = self.store.all_chunks_with_vectors()
        matches = self.ranker.search(query_vector, candidates, k) if candidates else []
        finished = time.perf_counter()

        logger.info(
            "Query %r: embed %.0fms, score %.0fms, %d candidates -> %d matches",
            query[:30] + ("..." if len(query) > 30 else ""),
            (embedded - started) * 1000,
            (finished - embedded) * 1000,
            len(candidates),
            len(matches),
        )
        return matches

    def list_documents(self) -> list[DocumentSummary]:
        self._require_available()
        return self.store.list_documents()

    def delete_document(self, document_id: str) -> bool:
        """Delete a document; unknown IDs are a no-op returning False."""
        self._require_available()
        return self.store.delete_document(document_id)

    def clear(self) -> int:
        self._require_available()
        return self.store.clear()

    def document_stats(self) -> DocumentStats:
        """Totals across the knowledge base plus the per-document listing."""
        documents = self.list_documents()
        return DocumentStats(
            total_documents=len(documents),
            total_chunks=sum(doc.chunk_count for doc in documents),
            documents=documents,
        )

    def enhance_query(self, message: str, k: int = 3) -> EnhancedQuery:
        """Wrap ``message`` in a prompt carrying the best matching excerpts.

        Retrieval failures do not block the chat turn: the original message
        comes back with ``error`` set.
        """
        if not message or not message.strip():
            return EnhancedQuery(message=message)

        try:
            matches = self.retrieve_top_matches(message, k)
        except (DocRagError, ValueError) as exc:
            logger.exception("Retrieval for query enhancement failed")
            return EnhancedQuery(message=message, error=str(exc))

        if not matches:
            return EnhancedQuery(message=message)

        context = "\n\n".join(
            f"[Document {i}: {match.document_name}]\n{match.content}"
            for i, match in enumerate(matches, start=1)
        )
        sources = [
            {
                "document_name": match.document_name,
                "similarity": match.similarity,
                "preview": match.content[:PREVIEW_CHARS] + "...",
            }
            for match in matches
        ]
        logger.info("Enhanced query with %d sources (%d chars of context)", len(sources), len(context))
        return EnhancedQuery(
            message=PROMPT_TEMPLATE.format(context=context, question=message),
            context=context,
            sources=sources,
        )

    # -- internals ------------------------------------------------------------

    def _require_available(self) -> None:
        if self.unavailable_reason is not None:
            raise ServiceUnavailableError(
                f"Retrieval service unavailable: {self.unavailable_reason}"
            )
