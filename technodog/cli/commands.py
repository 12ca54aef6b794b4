# =============================================================================
# technodog/cli/commands.py - Operator CLI
# =============================================================================
#
# Runs the same services as the HTTP API without starting a server.  Useful
# for seeding the knowledge base, for cron-driven cache cleanup and queue
# processing, and for flipping feature flags on a box with no frontend.
#
# Supported subcommands:
#
#   ingest             - Ingest Wikipedia topics (--query) or a text file (--file)
#   suggest-topics     - List curated topics that are not ingested yet
#   stats              - Knowledge table row counts
#   cache-cleanup      - Delete expired cache rows (scheduler entry point)
#   cache-stats        - Cache row count
#   flags              - show | set NAME on|off | reset | admin
#   enrich             - Run the full enrichment pipeline for one artist
#   queue              - Add an artist to the enrichment queue
#   process-queue      - Work the queue (--scheduled honours the enrichment flag)
#   enrichment-status  - Queue counts and the most recent runs
#
# Usage examples:
#   python -m technodog.cli ingest --query "Underground Resistance" --query "Tresor"
#   python -m technodog.cli ingest --file notes.txt --title "Detroit notes"
#   python -m technodog.cli flags set KNOWLEDGE_ZERO_HALLUCINATION_ENABLED on
#   python -m technodog.cli process-queue --limit 3 --scheduled
# =============================================================================

"""Command-line interface for the techno.dog knowledge layer.

Usage::

    python -m technodog.cli ingest --query "Jeff Mills"
    python -m technodog.cli cache-cleanup
    python -m technodog.cli enrich <artist_id>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from technodog.config.settings import Settings
from technodog.models.enrichment import RunStatus
from technodog.models.knowledge import KnowledgeSource, SourceType
from technodog.providers.flags.json_file_storage import JsonFileFlagStorage
from technodog.services.feature_flags import FeatureFlagService
from technodog.utils.errors import TechnoDogError

_ON_VALUES = ("on", "true", "1", "yes")
_OFF_VALUES = ("off", "false", "0", "no")


@asynccontextmanager
async def _components(app_settings: Settings) -> AsyncIterator[dict[str, Any]]:
    """Build and initialise every service; drain and close on exit."""
    # Deferred so ``--help`` and ``flags`` never construct HTTP clients.
    from technodog.main import _build_all, initialize_stores

    components = _build_all(app_settings)
    await initialize_stores(components)
    try:
        yield components
    finally:
        await components["knowledge_cache"].tasks.drain(timeout=10.0)
        await components["http_client"].aclose()


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _ON_VALUES:
        return True
    if value in _OFF_VALUES:
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {raw!r}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest Wikipedia queries and/or one text file."""
    sources = [KnowledgeSource(type=SourceType.WIKIPEDIA, query=q) for q in args.query or []]
    if args.file:
        path = Path(args.file)
        if not path.is_file():
            print(f"Error: file not found: {path}", file=sys.stderr)
            return 1
        sources.append(
            KnowledgeSource(
                type=SourceType.MANUAL,
                content=path.read_text(encoding="utf-8"),
                title=args.title or path.stem,
                url=args.url,
            )
        )
    if not sources:
        print("Error: pass at least one --query or --file", file=sys.stderr)
        return 1

    print(f"Ingesting {len(sources)} source(s)")
    result = await components["ingestion_service"].ingest(
        sources,
        extract_entities=not args.no_entities,
        generate_embeddings=not args.no_embeddings,
    )

    print("\nIngestion complete:")
    print(f"  Documents created:    {result.documents_created}")
    print(f"  Entities created:     {result.entities_created}")
    print(f"  Embeddings generated: {result.embeddings_generated}")
    for error in result.errors:
        print(f"  ! {error}")
    return 0 if not result.errors else 2


async def _handle_suggest_topics(args: argparse.Namespace, components: dict[str, Any]) -> int:
    suggestions = await components["ingestion_service"].suggest_topics()
    print(f"Already ingested: {suggestions.already_ingested}")
    for topic in suggestions.topics:
        print(f"  {topic.query}")
    return 0


async def _handle_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    stats = await components["ingestion_service"].stats()
    print("Knowledge Statistics")
    print("=" * 40)
    print(f"  Documents:             {stats.documents}")
    print(f"  Entities:              {stats.entities}")
    print(f"  Documents w/ vectors:  {stats.documents_with_embeddings}")
    return 0


async def _handle_cache_cleanup(args: argparse.Namespace, components: dict[str, Any]) -> int:
    removed = await components["knowledge_cache"].clear_expired_cache()
    print(f"Removed {removed} expired cache entr{'y' if removed == 1 else 'ies'}")
    return 0


async def _handle_cache_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    print(f"Cache entries: {await components['knowledge_cache'].entry_count()}")
    return 0


async def _handle_enrich(args: argparse.Namespace, components: dict[str, Any]) -> int:
    def _print_progress(run_id: str, stage: Any, progress: float, message: str) -> None:
        print(f"  [{progress:5.1f}%] {stage.value:<12} {message}")

    result = await components["orchestrator"].enrich_artist(
        args.artist_id, args.objective or None, on_progress=_print_progress
    )
    _print_json(result.model_dump(mode="json"))
    return 0 if result.status is not RunStatus.FAILED else 2


async def _handle_queue(args: argparse.Namespace, components: dict[str, Any]) -> int:
    queued = await components["orchestrator"].queue_artist(
        args.artist_id, priority=args.priority, reason=args.reason
    )
    if not queued.queued:
        print(f"{args.artist_id} is already waiting in the queue")
        return 0
    print(f"Queued {args.artist_id} as {queued.queue_id}")
    return 0


async def _handle_process_queue(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["orchestrator"].process_queue(
        limit=args.limit, scheduled=args.scheduled
    )
    if result.skipped:
        print("Enrichment is disabled by feature flag; queue left untouched.")
        return 0
    print(
        f"Processed {result.processed}: {result.completed} completed, "
        f"{result.failed} failed, {result.requeued} requeued"
    )
    return 0


async def _handle_enrichment_status(args: argparse.Namespace, components: dict[str, Any]) -> int:
    report = await components["orchestrator"].status()
    _print_json(report.model_dump(mode="json"))
    return 0


def _handle_flags(args: argparse.Namespace, app_settings: Settings) -> int:
    """Flags only touch the JSON flag file, so no other service is built."""
    service = FeatureFlagService(JsonFileFlagStorage(app_settings.feature_flags_path))
    if args.flags_command == "set":
        try:
            service.set(args.name, args.value)
        except KeyError:
            print(f"Error: unknown flag {args.name!r}", file=sys.stderr)
            return 1
    elif args.flags_command == "reset":
        service.reset()
    elif args.flags_command == "admin":
        service.enable_admin_mode()
    print(service.summary())
    return 0


_ASYNC_HANDLERS: dict[str, Callable[[argparse.Namespace, dict[str, Any]], Awaitable[int]]] = {
    "ingest": _handle_ingest,
    "suggest-topics": _handle_suggest_topics,
    "stats": _handle_stats,
    "cache-cleanup": _handle_cache_cleanup,
    "cache-stats": _handle_cache_stats,
    "enrich": _handle_enrich,
    "queue": _handle_queue,
    "process-queue": _handle_process_queue,
    "enrichment-status": _handle_enrichment_status,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    handler = _ASYNC_HANDLERS[args.command]
    async with _components(app_settings) as components:
        try:
            return await handler(args, components)
        except TechnoDogError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m technodog.cli",
        description="Operate the techno.dog knowledge cache, ingestion and enrichment.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest Wikipedia topics or a text file")
    ingest_parser.add_argument(
        "--query", action="append", help="Wikipedia topic (repeatable)"
    )
    ingest_parser.add_argument("--file", help="Path to a UTF-8 text file")
    ingest_parser.add_argument("--title", help="Title for --file (default: file stem)")
    ingest_parser.add_argument("--url", help="Source URL recorded for --file")
    ingest_parser.add_argument(
        "--no-entities", action="store_true", dest="no_entities", help="Skip entity extraction"
    )
    ingest_parser.add_argument(
        "--no-embeddings", action="store_true", dest="no_embeddings", help="Skip embeddings"
    )

    subparsers.add_parser("suggest-topics", help="List curated topics not ingested yet")
    subparsers.add_parser("stats", help="Show knowledge table counts")
    subparsers.add_parser("cache-cleanup", help="Delete expired cache entries")
    subparsers.add_parser("cache-stats", help="Show cache entry count")

    # -- flags --
    flags_parser = subparsers.add_parser("flags", help="Show or change feature flags")
    flags_sub = flags_parser.add_subparsers(dest="flags_command")
    flags_sub.add_parser("show", help="Print every flag")
    set_parser = flags_sub.add_parser("set", help="Set one flag")
    set_parser.add_argument("name", help="Flag field or storage name")
    set_parser.add_argument("value", type=_parse_bool, help="on | off")
    flags_sub.add_parser("reset", help="Restore defaults")
    flags_sub.add_parser("admin", help="Apply the admin preset")

    # -- enrichment --
    enrich_parser = subparsers.add_parser("enrich", help="Run the enrichment pipeline")
    enrich_parser.add_argument("artist_id", help="Canonical artist id")
    enrich_parser.add_argument(
        "--objective", action="append", help="Research objective (repeatable)"
    )

    queue_parser = subparsers.add_parser("queue", help="Queue an artist for enrichment")
    queue_parser.add_argument("artist_id", help="Canonical artist id")
    queue_parser.add_argument("--priority", type=int, default=0, help="Higher runs first")
    queue_parser.add_argument("--reason", default="manual_request", help="Queue reason")

    process_parser = subparsers.add_parser("process-queue", help="Work the enrichment queue")
    process_parser.add_argument("--limit", type=int, default=5, help="Items to process")
    process_parser.add_argument(
        "--scheduled",
        action="store_true",
        help="Scheduler run: do nothing when enrichment is flagged off",
    )

    subparsers.add_parser("enrichment-status", help="Queue counts and recent runs")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, build services from Settings, dispatch, and exit."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()

    if args.command == "flags":
        if args.flags_command is None:
            args.flags_command = "show"
        sys.exit(_handle_flags(args, app_settings))

    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
