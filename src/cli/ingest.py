# =============================================================================
# src/cli/ingest.py - CLI Ingest Command (knowledge-base management)
# =============================================================================
#
# Standalone CLI for loading FBK documents into the assistant's knowledge
# base outside the admin API.  It runs the exact same IngestionService as
# the web app (same chunker settings, same embedding model, same ChromaDB
# collection and SQLite database), so documents ingested here are
# indistinguishable from admin uploads.
#
# Supported subcommands:
#
#   file   - Ingest a local PDF, markdown or text file under a title.
#            Re-running with the same title replaces that document's chunks.
#   list   - Show every document with its status and chunk count
#   stats  - Display corpus totals
#   delete - Remove a document, its chunks and its stored upload
#
# Usage examples:
#   python -m src.cli.ingest file --file docs/handbook.pdf \
#       --title "Member Handbook" --url https://fbk.org/handbook
#   python -m src.cli.ingest list
#   python -m src.cli.ingest stats
#   python -m src.cli.ingest delete --id 3f0c... --yes
# =============================================================================

"""Standalone CLI for managing the assistant's knowledge base.

Usage::

    python -m src.cli.ingest file --file /path/to/handbook.pdf \\
        --title "Member Handbook" --url https://fbk.org/handbook

    python -m src.cli.ingest list

    python -m src.cli.ingest stats
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from src.config.settings import Settings
from src.utils.errors import AssistantError


def _build_vector_store(app_settings: Settings):  # noqa: ANN202
    """Open the ChromaDB collection the web app uses.

    Imports are deferred so ``--help`` does not load chromadb.
    """
    from src.providers.embedding.openai_embedding_provider import dimension_for_model
    from src.providers.vector_store.chromadb_provider import ChromaDBProvider

    dimension = dimension_for_model(app_settings.embedding_model or "text-embedding-3-small")
    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        embedding_dimension=dimension,
    )


async def _build_ingestion_service(app_settings: Settings):  # noqa: ANN202
    """Construct the full ingestion service with all providers.

    Returns
    -------
    tuple[IngestionService, str] or tuple[None, str]
        The ingestion service and a status message.  Returns ``None`` with
        an error message if required configuration is missing.
    """
    missing = app_settings.missing_required()
    if missing:
        return None, (
            f"Missing required configuration: {', '.join(missing)}\n"
            "Set them in the environment or in .env."
        )

    from src.providers.document.sqlite_document_store import SQLiteDocumentStore
    from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
    from src.services.ingestion import Embedder, IngestionService, TextChunker, TextExtractor

    Path(app_settings.database_path).parent.mkdir(parents=True, exist_ok=True)
    document_store = SQLiteDocumentStore(db_path=app_settings.database_path)
    await document_store.initialize()

    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    service = IngestionService(
        extractor=TextExtractor(),
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
        ),
        embedder=Embedder(embedding_provider, batch_size=app_settings.embed_batch_size),
        vector_store=_build_vector_store(app_settings),
        document_store=document_store,
        upload_dir=app_settings.upload_dir,
    )

    provider_name = embedding_provider.get_provider_name()
    return service, f"Embedding: {provider_name} ({app_settings.embedding_model}) | Store: chromadb"


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, service) -> int:  # noqa: ANN001
    """Ingest a local file."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    print(f"Ingesting: {args.title}")
    print(f"  File: {path}")
    if args.url:
        print(f"  URL:  {args.url}")

    try:
        result = await service.ingest_file(path, title=args.title, source_url=args.url)
    except AssistantError as exc:
        print(f"\nIngestion failed: {exc}", file=sys.stderr)
        return 1

    print("\nIngestion complete:")
    print(f"  Chunks created: {result.chunks_created}")
    print(f"  Characters:     {result.total_characters}")
    print(f"  Time:           {result.ingestion_time:.2f}s")
    print(f"  Document ID:    {result.document_id}")
    return 0


async def _handle_list(app_settings: Settings) -> int:
    """List documents with status and chunk counts."""
    from src.providers.document.sqlite_document_store import SQLiteDocumentStore

    document_store = SQLiteDocumentStore(db_path=app_settings.database_path)
    await document_store.initialize()
    documents = await document_store.list_documents()
    if not documents:
        print("No documents.")
        return 0

    vector_store = _build_vector_store(app_settings)
    print(f"{'STATUS':<10} {'CHUNKS':>6}  {'ID':<36}  TITLE")
    for doc in documents:
        chunks = await vector_store.count_by_document(doc.id)
        print(f"{doc.status.value:<10} {chunks:>6}  {doc.id:<36}  {doc.title}")
        if doc.error_msg:
            print(f"{'':<10} {'':>6}  error: {doc.error_msg}")
    return 0


async def _handle_stats(app_settings: Settings) -> int:
    """Display corpus statistics."""
    vector_store = _build_vector_store(app_settings)
    stats = await vector_store.get_stats()

    print("Corpus Statistics")
    print("=" * 40)
    print(f"  Total chunks:     {stats.total_chunks}")
    print(f"  Total documents:  {stats.total_documents}")

    if stats.chunks_by_document:
        print("\n  Chunks by document:")
        for doc_id, count in sorted(stats.chunks_by_document.items()):
            print(f"    {doc_id:<38} {count}")

    return 0


async def _handle_delete(args: argparse.Namespace, service) -> int:  # noqa: ANN001
    """Delete one document after confirmation."""
    if not args.yes:
        answer = input(f"Delete document {args.id} and all its chunks? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1

    deleted = await service.delete_document(args.id)
    if not deleted:
        print(f"Error: document not found: {args.id}", file=sys.stderr)
        return 1
    print(f"Deleted document {args.id}")
    return 0


async def _run_with_service(args: argparse.Namespace, app_settings: Settings) -> int:
    service, status_msg = await _build_ingestion_service(app_settings)
    if service is None:
        print(f"Error: {status_msg}", file=sys.stderr)
        return 1

    print(f"Providers: {status_msg}")
    print()

    if args.command == "file":
        return await _handle_file(args, service)
    return await _handle_delete(args, service)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Manage the FBK assistant knowledge base.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Ingestion commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest a PDF, markdown or text file")
    file_parser.add_argument("--file", required=True, help="Path to the file")
    file_parser.add_argument("--title", required=True, help="Document title shown in citations")
    file_parser.add_argument("--url", default=None, help="Public URL of the original document")

    # -- list --
    subparsers.add_parser("list", help="List documents with status and chunk counts")

    # -- stats --
    subparsers.add_parser("stats", help="Show corpus statistics")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document and its chunks")
    delete_parser.add_argument("--id", required=True, help="Document ID")
    delete_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """CLI entry point for the ingestion tool.

    ``list`` and ``stats`` only read the stores and need no API key; ``file``
    and ``delete`` build the full ingestion service.
    """
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    from src.utils.logging import configure_logging

    configure_logging(log_level=app_settings.log_level)

    if args.command == "list":
        exit_code = asyncio.run(_handle_list(app_settings))
    elif args.command == "stats":
        exit_code = asyncio.run(_handle_stats(app_settings))
    elif args.command in ("file", "delete"):
        exit_code = asyncio.run(_run_with_service(args, app_settings))
    else:
        parser.print_help()
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
