"""Unit tests for the retrieval orchestrator."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from conftest import FakeBackend
from docrag.config import Settings
from docrag.embedders import DirectKeyBackend, EmbeddingClient
from docrag.errors import NetworkError, ProviderError, ServiceUnavailableError
from docrag.models import Match
from docrag.service import RetrievalService
from docrag.storage import VectorStore

HANDBOOK = (
    "=== Refund policy ===\n\n"
    "Refunds are issued within fourteen days of purchase.\n\n"
    "【表格1】 refund windows by product line\n\n"
    "Shipping is free for orders above fifty euros."
)


class TestIngestAndRetrieve:
    def test_ingest_document_then_retrieve(self, service: RetrievalService) -> None:
        document_id = service.ingest_document(
            "faq",
            [
                {"content": "zzzz zzzz zzzz", "startOffset": 0, "endOffset": 14},
                {"content": "refund refund", "startOffset": 16, "endOffset": 29},
            ],
            {"source": "faq.docx"},
        )

        matches = service.retrieve_top_matches("refund", k=2)

        assert len(matches) == 2
        assert all(isinstance(m, Match) for m in matches)
        assert matches[0].content == "refund refund"
        assert matches[0].document_id == document_id
        assert matches[0].document_name == "faq"
        assert matches[0].similarity >= matches[1].similarity
        assert set(matches[0].to_dict()) == {"documentId", "documentName", "content", "similarity"}

    def test_ingest_text_chunks_and_enriches_metadata(self, service: RetrievalService) -> None:
        service.chunker.soft_limit = 60
        service.chunker.hard_limit = 120
        service.ingest_text("handbook", HANDBOOK, {"source": "handbook.txt"})

        [summary] = service.list_documents()
        assert summary.chunk_count > 1
        assert summary.metadata["source"] == "handbook.txt"
        assert summary.metadata["chunk_count"] == summary.chunk_count
        assert summary.metadata["extracted_size"] == len(HANDBOOK)

    def test_ingest_text_rejects_blank_text(self, service: RetrievalService) -> None:
        with pytest.raises(ValueError):
            service.ingest_text("blank", "   \n\n  ")

    def test_empty_store_returns_empty_list(self, service: RetrievalService) -> None:
        assert service.retrieve_top_matches("anything", k=5) == []

    def test_results_never_exceed_k(self, service: RetrievalService) -> None:
        service.ingest_text("handbook", HANDBOOK)
        service.ingest_text("again", HANDBOOK)
        assert len(service.retrieve_top_matches("refund", k=1)) == 1

    def test_default_k_comes_from_settings(self, service: RetrievalService) -> None:
        for i in range(5):
            service.ingest_document(f"doc-{i}", [{"content": f"text {i}", "start": 0, "end": 6}])
        assert len(service.retrieve_top_matches("text")) == service.config.default_top_k

    @pytest.mark.parametrize("k", [0, -1])
    def test_invalid_k(self, service: RetrievalService, k: int) -> None:
        with pytest.raises(ValueError):
            service.retrieve_top_matches("refund", k=k)

    def test_query_embedding_failure_propagates(self, service: RetrievalService) -> None:
        class Unreachable:
            model_name = "down"

            def embed_query(self, text: str):
                raise NetworkError("Embedding API timeout")

        service.embedder = Unreachable()
        with pytest.raises(NetworkError):
            service.retrieve_top_matches("refund", k=3)


class TestAtomicity:
    def test_failed_multi_batch_ingestion_is_invisible(self, test_settings: Settings, db_path: Path) -> None:
        client = EmbeddingClient(FakeBackend(fail_on_call=3), max_batch_count=1, sleep=lambda s: None)
        service = RetrievalService(test_settings, embedder=client, store=VectorStore(db_path, client))
        service.ingest_document("survivor", [{"content": "kept", "start": 0, "end": 4}])

        chunks = [{"content": f"part {i}", "start": i * 10, "end": i * 10 + 6} for i in range(4)]
        with pytest.raises(ProviderError):
            service.ingest_document("doomed", chunks)

        assert [d.name for d in service.list_documents()] == ["survivor"]
        assert {c.document_name for c in service.store.all_chunks_with_vectors()} == {"survivor"}


class TestManagement:
    def test_delete_unknown_document_is_noop(self, service: RetrievalService) -> None:
        service.ingest_text("handbook", HANDBOOK)
        before = service.document_stats()

        assert service.delete_document("never-ingested") is False

        after = service.document_stats()
        assert (after.total_documents, after.total_chunks) == (before.total_documents, before.total_chunks)

    def test_document_stats(self, service: RetrievalService) -> None:
        service.ingest_document("a", [{"content": "one", "start": 0, "end": 3}])
        service.ingest_document(
            "b",
            [{"content": "two", "start": 0, "end": 3}, {"content": "three", "start": 5, "end": 10}],
        )
        stats = service.document_stats()
        assert stats.total_documents == 2
        assert stats.total_chunks == 3
        assert [d.name for d in stats.documents] == ["b", "a"]

    def test_clear(self, service: RetrievalService) -> None:
        service.ingest_text("handbook", HANDBOOK)
        assert service.clear() == 1
        assert service.list_documents() == []


class TestEnhanceQuery:
    def test_builds_context_from_matches(self, service: RetrievalService) -> None:
        service.ingest_document("faq", [{"content": "Refunds take fourteen days.", "start": 0, "end": 27}])

        result = service.enhance_query("How long do refunds take?")

        assert result.error is None
        assert "[Document 1: faq]" in result.context
        assert "Refunds take fourteen days." in result.message
        assert "How long do refunds take?" in result.message
        assert result.sources[0]["document_name"] == "faq"
        assert result.sources[0]["preview"].startswith("Refunds take")

    def test_empty_store_keeps_message(self, service: RetrievalService) -> None:
        result = service.enhance_query("hello")
        assert result.message == "hello"
        assert result.context is None
        assert result.sources == []

    def test_failure_keeps_message_and_reports_error(self, service: RetrievalService) -> None:
        class Broken:
            model_name = "broken"

            def embed_query(self, text: str):
                raise ProviderError("Embedding API error: 500", status_code=500)

        service.embedder = Broken()
        result = service.enhance_query("hello")
        assert result.message == "hello"
        assert "500" in result.error

    @pytest.mark.parametrize("message", ["", "   ", "\n\t"])
    def test_blank_message_is_returned_unchanged(self, service: RetrievalService, message: str) -> None:
        result = service.enhance_query(message)
        assert result.message == message
        assert result.error is None
        assert result.sources == []

    def test_invalid_k_keeps_message_and_reports_error(self, service: RetrievalService) -> None:
        result = service.enhance_query("hello", k=0)
        assert result.message == "hello"
        assert "k must be at least 1" in result.error


class TestConfiguration:
    def test_missing_credentials_mark_service_unavailable(self, db_path: Path) -> None:
        config = Settings(embedding_api_key="", database_path=str(db_path), _env_file=None)
        service = RetrievalService(config)

        assert service.available is False
        with pytest.raises(ServiceUnavailableError, match="DOCRAG_EMBEDDING_API_KEY"):
            service.retrieve_top_matches("anything", k=1)
        with pytest.raises(ServiceUnavailableError):
            service.ingest_document("doc", [{"content": "x", "start": 0, "end": 1}])
        with pytest.raises(ServiceUnavailableError):
            service.list_documents()
        assert not db_path.exists()

    def test_plain_key_without_secret_is_unavailable(self, db_path: Path) -> None:
        config = Settings(
            embedding_api_key="legacy-key", embedding_secret_key="", database_path=str(db_path), _env_file=None
        )
        assert RetrievalService(config).available is False

    def test_builds_http_client_from_settings(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0]}]})

        service = RetrievalService(test_settings, http_client=httpx.Client(transport=httpx.MockTransport(handler)))

        assert service.available
        assert isinstance(service.embedder, EmbeddingClient)
        assert isinstance(service.embedder.backend, DirectKeyBackend)
        assert service.retrieve_top_matches("anything", k=1) == []

    def test_close_releases_client_built_from_settings(self, test_settings: Settings) -> None:
        with RetrievalService(test_settings) as service:
            http = service.embedder.backend._http
            assert not http.is_closed
        assert http.is_closed

    def test_close_leaves_injected_client_open(self, test_settings: Settings) -> None:
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        service = RetrievalService(test_settings, http_client=client)
        service.close()
        assert not client.is_closed
