"""CLI entry point for docrag knowledge-base management."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from docrag.config import settings
from docrag.errors import DocRagError
from docrag.service import RetrievalService

logger = logging.getLogger(__name__)


def ingest(service: RetrievalService, source: str, name: str | None = None) -> None:
    """Chunk, embed and store a plain-text file.

    Args:
        service: Retrieval service to ingest into
        source: Path to a UTF-8 text file
        name: Display name (defaults to the file name)
    """
    source_path = Path(source)
    if not source_path.is_file():
        logger.error(f"File not found: {source}")
        sys.exit(1)

    text = source_path.read_text(encoding="utf-8")
    logger.info(f"Read {len(text)} chars from {source_path}")

    document_id = service.ingest_text(
        name or source_path.name,
        text,
        {
            "source": str(source_path.absolute()),
            "original_size": source_path.stat().st_size,
            "added_at": datetime.now().isoformat(),
        },
    )

    print(f"Stored {source_path.name} as {document_id}")


def list_documents(service: RetrievalService) -> None:
    """Print every document, newest first."""
    documents = service.list_documents()
    if not documents:
        print("Knowledge base is empty")
        return

    for i, doc in enumerate(documents, start=1):
        print(f"{i}. {doc.name} ({doc.chunk_count} chunks)")
        print(f"   id: {doc.id}")
        print(f"   created: {doc.created_at}")


def stats(service: RetrievalService) -> None:
    """Print knowledge-base totals."""
    summary = service.document_stats()
    print(f"Documents: {summary.total_documents}")
    print(f"Chunks: {summary.total_chunks}")
    dimension = service.store.embedding_dimension
    if dimension:
        print(f"Embedding: {service.store.get_info('embedding_model')} ({dimension} dims)")


def search(service: RetrievalService, query: str, k: int) -> None:
    """Print the top-k matches for a query."""
    matches = service.retrieve_top_matches(query, k)
    if not matches:
        print("No matches")
        return

    for i, match in enumerate(matches, start=1):
        preview = match.content[:60].replace("\n", " ")
        print(f"{i}. [{match.similarity:.4f}] {match.document_name}: {preview}...")


def delete(service: RetrievalService, document_id: str) -> None:
    """Delete one document by ID."""
    if service.delete_document(document_id):
        print(f"Deleted {document_id}")
    else:
        print(f"No document {document_id}")


def clear(service: RetrievalService, yes: bool = False) -> None:
    """Delete every document."""
    if not yes:
        logger.error("Refusing to clear the knowledge base without --yes")
        sys.exit(1)
    count = service.clear()
    print(f"Removed {count} documents")


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docrag",
        description="docrag - document retrieval store for grounded chat",
    )
    parser.add_argument(
        "--db",
        default=None,
        help=f"SQLite database path (default: {settings.database_path})",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser("ingest", help="Add a text file to the knowledge base")
    ingest_parser.add_argument("source", help="Path to a UTF-8 text file")
    ingest_parser.add_argument("--name", help="Display name (default: file name)")

    subparsers.add_parser("list", help="List all documents")
    subparsers.add_parser("stats", help="Show knowledge-base statistics")

    search_parser = subparsers.add_parser("search", help="Search the knowledge base")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "-k",
        type=int,
        default=settings.default_top_k,
        help=f"Number of matches (default: {settings.default_top_k})",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a document by ID")
    delete_parser.add_argument("document_id", help="Document ID")

    clear_parser = subparsers.add_parser("clear", help="Delete every document")
    clear_parser.add_argument("--yes", action="store_true", help="Confirm clearing")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
    )

    config = settings.model_copy(update={"database_path": args.db}) if args.db else settings
    service = RetrievalService(config)

    try:
        if args.command == "ingest":
            ingest(service, args.source, args.name)
        elif args.command == "list":
            list_documents(service)
        elif args.command == "stats":
            stats(service)
        elif args.command == "search":
            search(service, args.query, args.k)
        elif args.command == "delete":
            delete(service, args.document_id)
        elif args.command == "clear":
            clear(service, args.yes)
    except (DocRagError, ValueError) as exc:
        logger.error(f"{args.command} failed: {exc}")
        sys.exit(1)
    finally:
        service.close()


if __name__ == "__main__":
    main()
