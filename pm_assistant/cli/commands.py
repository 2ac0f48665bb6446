"""Operator CLI for indexing and chat.

Usage::

    python -m pm_assistant.cli pending [--community-id ID] [--folder-type Community]
    python -m pm_assistant.cli document DOCUMENT_ID
    python -m pm_assistant.cli reset-failed [--community-id ID]
    python -m pm_assistant.cli stats
    python -m pm_assistant.cli chat "Who are the board members?" [--community-id ID] [--no-rag]

Services are built with the same factory as the web app so both use the
same embedding model and collection.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from pm_assistant.config.settings import Settings
from pm_assistant.models.documents import BulkIndexingReport, DocumentScope, IndexingFilter, IndexingOutcome
from pm_assistant.utils.errors import AbortedError, ModelError, PMAssistantError

_MISSING_EMBEDDING_KEY = (
    "No embedding provider available.\n"
    "Set OPENAI_API_KEY (and optionally OPENAI_BASE_URL) to enable indexing and retrieval.\n"
)


def _print_report(report: BulkIndexingReport) -> None:
    print("Indexing Summary")
    print("=" * 40)
    print(f"  Total:       {report.total}")
    print(f"  Successful:  {report.successful}")
    print(f"  Failed:      {report.failed}")
    print(f"  Skipped:     {report.skipped}")

    if report.errors:
        print("\n  Errors:")
        for err in report.errors:
            print(f"    {err.display_name} ({err.document_id}): {err.error}")

    if report.skipped_documents:
        print("\n  Skipped:")
        for skipped in report.skipped_documents:
            print(f"    {skipped.display_name}: {skipped.reason}")


def _print_outcome(outcome: IndexingOutcome) -> None:
    print(f"{outcome.display_name} ({outcome.document_id}): {outcome.status.value}")
    if outcome.reason:
        print(f"  Reason: {outcome.reason}")
    if outcome.error:
        print(f"  Previous error: {outcome.error}")
    details = outcome.details
    print(f"  Chunks: {details.chunks_count}  Pages: {details.num_pages}  Text length: {details.text_length}")
    if details.financial_data_extracted:
        print("  Financial data extracted")


async def _handle_pending(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["indexing_service"]
    folder_type = DocumentScope(args.folder_type) if args.folder_type else None
    report = await service.index_all_pending(
        IndexingFilter(community_id=args.community_id, folder_type=folder_type),
    )
    _print_report(report)
    return 1 if report.failed else 0


async def _handle_document(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["indexing_service"]
    try:
        outcome = await service.index_document(args.document_id)
    except PMAssistantError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    _print_outcome(outcome)
    return 0


async def _handle_reset_failed(args: argparse.Namespace, components: dict[str, Any]) -> int:
    count = await components["indexing_service"].reset_failed(args.community_id)
    print(f"Flagged {count} failed document(s) for re-indexing.")
    return 0


async def _handle_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    vector_store = components["vector_store"]
    if not vector_store.is_available():
        print("Vector store not available.")
        return 1

    stats = await vector_store.get_stats()
    print("Vector Store Statistics")
    print("=" * 40)
    print(f"  Provider:       {vector_store.get_provider_name()}")
    print(f"  Collection:     {stats.collection_name}")
    print(f"  Total records:  {stats.total_records}")
    if stats.persist_directory:
        print(f"  Directory:      {stats.persist_directory}")
    return 0


async def _handle_chat(args: argparse.Namespace, components: dict[str, Any]) -> int:
    from pm_assistant.models.conversation import ChatOptions

    service = components["conversation_service"]
    if service is None:
        print("Error: chat needs a model API key (ANTHROPIC_API_KEY or OPENAI_API_KEY).", file=sys.stderr)
        return 1

    try:
        result = await service.chat(
            args.message,
            options=ChatOptions(community_id=args.community_id, use_rag=not args.no_rag),
        )
    except ModelError as exc:
        print(f"Error: {exc.user_message}", file=sys.stderr)
        return 1
    except AbortedError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(result.response)
    print()
    if result.sources.database_functions:
        names = ", ".join(f.name for f in result.sources.database_functions)
        print(f"Functions: {names}")
    if result.sources.documents:
        names = ", ".join(d.display_name or d.document_id or "?" for d in result.sources.documents)
        print(f"Documents: {names}")
    usage = result.usage
    print(
        f"Tokens: {usage.input_tokens} in / {usage.output_tokens} out  "
        f"Cost: ${usage.cost.total:.4f}  Iterations: {usage.iterations}"
    )
    return 0


_HANDLERS = {
    "pending": _handle_pending,
    "document": _handle_document,
    "reset-failed": _handle_reset_failed,
    "stats": _handle_stats,
    "chat": _handle_chat,
}

_NEEDS_EMBEDDINGS = frozenset({"pending", "document", "reset-failed", "chat"})


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from pm_assistant.main import build_services, initialize_stores

    components = build_services(app_settings)
    try:
        if args.command in _NEEDS_EMBEDDINGS and components["embedding_provider"] is None:
            print(f"Error: {_MISSING_EMBEDDING_KEY}", file=sys.stderr)
            return 1
        await initialize_stores(components)
        return await _HANDLERS[args.command](args, components)
    finally:
        await components["http_client"].aclose()


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the operator CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m pm_assistant.cli",
        description="Index community documents and query the assistant.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    pending = subparsers.add_parser("pending", help="Index every PDF that needs work")
    pending.add_argument("--community-id", dest="community_id", help="Only this community's documents")
    pending.add_argument(
        "--folder-type",
        dest="folder_type",
        choices=[s.value for s in DocumentScope],
        help="Only documents in this folder type",
    )

    document = subparsers.add_parser("document", help="Index one document")
    document.add_argument("document_id", help="Document identifier")

    reset = subparsers.add_parser("reset-failed", help="Flag failed documents for re-indexing")
    reset.add_argument("--community-id", dest="community_id", help="Only this community's documents")

    subparsers.add_parser("stats", help="Show vector store statistics")

    chat = subparsers.add_parser("chat", help="Ask the assistant a question")
    chat.add_argument("message", help="The question")
    chat.add_argument("--community-id", dest="community_id", help="Community the question is about")
    chat.add_argument("--no-rag", dest="no_rag", action="store_true", help="Skip document retrieval")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    return asyncio.run(_run(args, Settings()))
