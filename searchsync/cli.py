"""
CLI entry point for the search synchronization service.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config.settings import SyncSettings, load_settings
from .exceptions import SearchSyncException
from .handler.record_handler import RecordHandler
from .indexer.registry import IndexerFactory, build_default_indexer_registry
from .queue import QueueItemRepository, QueueStatusService, create_queue_repository
from .queue.models import create_tables_if_not_exist, initialize_models
from .repository.memory import InMemoryBackend
from .search_engine.registry import SearchEngineFactory, build_default_search_engine_registry
from .utils.logging import setup_logger
from .utils.retry import rate_limit_retry_config
from .worker.deletion_detection import DeletionDetectionService, IndexDeletionRunner
from .worker.queue_worker import QueueWorker


@dataclass
class Application:
    """Object graph of one CLI invocation."""

    settings: SyncSettings
    backend: InMemoryBackend
    queue_repository: QueueItemRepository
    search_engine_factory: SearchEngineFactory
    indexer_factory: IndexerFactory

    async def close(self) -> None:
        await self.search_engine_factory.close()


def build_application(settings: SyncSettings, records_file: Optional[Path]) -> Application:
    if records_file is not None:
        backend = InMemoryBackend.from_file(records_file, settings.sites)
    else:
        backend = InMemoryBackend.from_snapshot({}, settings.sites)

    queue_repository = create_queue_repository(settings)
    search_engine_factory = SearchEngineFactory(build_default_search_engine_registry(settings))
    indexer_registry = build_default_indexer_registry(
        settings,
        backend.records,
        queue_repository,
        search_engine_factory,
        backend.files,
        site_resolver=backend.sites,
    )
    return Application(
        settings=settings,
        backend=backend,
        queue_repository=queue_repository,
        search_engine_factory=search_engine_factory,
        indexer_factory=IndexerFactory(indexer_registry),
    )


async def run_work(app: Application, documents_to_index: int, max_runtime: Optional[float]) -> int:
    """Drain one batch of the queue."""
    settings = app.settings
    worker = QueueWorker(
        app.queue_repository,
        app.indexer_factory,
        app.backend.indexing_services,
        app.backend.records,
        status_service=QueueStatusService(settings.status_file),
        retry_config=rate_limit_retry_config(settings.rate_limit_base_delay, settings.rate_limit_max_delay),
    )

    report = await worker.drain(documents_to_index, max_runtime)

    if report.skipped_backoff:
        print(f"Rate limit backoff active, {report.backoff_seconds:.0f}s remaining")
        return 0

    print(f"Processed {report.processed}/{report.total} items ({report.progress:.1f}%)")
    print(f"  Indexed: {report.indexed}")
    print(f"  Skipped: {report.skipped}")
    print(f"  Failed:  {report.failed}")
    for failure in report.failures:
        print(f"    {failure.table_name}:{failure.record_uid} (service {failure.service_uid}): {failure.error}")
    if report.rate_limited:
        print(f"  Rate limited, next run in {report.backoff_seconds:.0f}s")
    if report.timed_out:
        print("  Stopped after reaching the maximum runtime")

    return 1 if report.failed else 0


async def run_stats(app: Application) -> int:
    statistics = await app.queue_repository.get_statistics()
    status = QueueStatusService(app.settings.status_file).load()

    print("Indexing queue:")
    if not statistics:
        print("  (empty)")
    for row in statistics:
        print(f"  {row['table_name']}: {row['count']}")
    print(f"Last execution: {status.last_execution_time or 'never'}")
    print(f"Last progress: {status.progress:.1f}% ({status.processed}/{status.total})")
    if status.backoff_until:
        print(f"Backoff until: {status.backoff_until} (streak {status.rate_limit_streak})")
    return 0


async def run_purge(app: Application, service_uid: int) -> int:
    indexing_service = await app.backend.indexing_services.find_by_uid(service_uid)
    if indexing_service is None:
        print(f"Indexing service {service_uid} not found")
        return 1

    indexer = app.indexer_factory.make_instance_by_indexing_service(indexing_service)
    if indexer is None:
        print(f"No indexer registered for type '{indexing_service.type}'")
        return 1

    await indexer.dequeue_all()
    print(f"Removed all queue items of indexing service {service_uid}")
    return 0


async def run_enqueue_all(app: Application, service_uid: Optional[int]) -> int:
    if service_uid is not None:
        indexing_service = await app.backend.indexing_services.find_by_uid(service_uid)
        services = [indexing_service] if indexing_service else []
    else:
        services = await app.backend.indexing_services.find_all()

    total = 0
    for indexing_service in services:
        indexer = app.indexer_factory.make_instance_by_indexing_service(indexing_service)
        if indexer is None:
            continue
        total += await indexer.enqueue_all()

    print(f"Enqueued {total} records for {len(services)} indexing services")
    return 0


async def run_detect_deletions(app: Application, dry_run: bool) -> int:
    record_handler = RecordHandler(
        app.search_engine_factory,
        app.indexer_factory,
        app.backend.records,
        app.backend.indexing_services,
    )
    detection = DeletionDetectionService(
        app.settings, app.indexer_factory, app.backend.indexing_services, app.backend.records
    )
    candidates = await IndexDeletionRunner(detection, record_handler).run(dry_run)

    if not candidates:
        print("No records to remove")
    for entry in candidates:
        action = "Would remove" if dry_run else "Removed"
        print(f"{action} {entry.table} {entry.record_uids} from indexing service {entry.indexing_service.uid}")
    return 0


def show_config(settings: SyncSettings) -> None:
    # Credentials are never printed
    print("SearchSync Configuration:")
    print(f"  Environment: {settings.environment}")
    print(f"  Queue Backend: {settings.queue_backend}")
    if settings.queue_backend == "local":
        print(f"  Queue File: {settings.local_queue_file}")
    else:
        print(f"  DynamoDB Table: {settings.dynamodb_queue_table} ({settings.aws_region})")
    print(f"  Status File: {settings.status_file}")
    print(f"  Algolia App: {settings.algolia_app_id or '-'}")
    print(f"  OpenSearch: {settings.opensearch_endpoint or '-'}")
    print(f"  Document Id Namespace: {settings.document_id_namespace}")
    print(f"  Documents To Index: {settings.documents_to_index}")
    print(f"  Sites: {len(settings.sites)}")
    print(f"  Indexer Types: {', '.join(sorted(settings.indexer)) or '-'}")


async def run_command(args: argparse.Namespace, settings: SyncSettings) -> int:
    app = build_application(settings, getattr(args, "records", None))
    try:
        if args.command == "work":
            documents_to_index = args.documents_to_index or settings.documents_to_index
            max_runtime = args.max_runtime or settings.max_runtime_seconds
            return await run_work(app, documents_to_index, max_runtime)
        if args.command == "stats":
            return await run_stats(app)
        if args.command == "purge":
            return await run_purge(app, args.service_uid)
        if args.command == "enqueue-all":
            return await run_enqueue_all(app, args.service_uid)
        if args.command == "detect-deletions":
            return await run_detect_deletions(app, args.dry_run)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await app.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Incremental CMS to search index synchronization")

    parser.add_argument(
        "--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level"
    )
    parser.add_argument("--json-logs", action="store_true", default=None, help="Output logs in JSON format")
    parser.add_argument("--config", type=Path, default=None, help="Path to a YAML configuration file")
    parser.add_argument("--environment", default=None, help="Environment name (dev/devlocal/staging/prod)")

    records_parent = argparse.ArgumentParser(add_help=False)
    records_parent.add_argument("--records", type=Path, default=None, help="JSON snapshot of the CMS records")

    subparsers = parser.add_subparsers(dest="command", required=True)

    work = subparsers.add_parser("work", parents=[records_parent], help="Drain one batch of the indexing queue")
    work.add_argument("--documents-to-index", type=int, default=None, help="Maximum number of queue items")
    work.add_argument("--max-runtime", type=float, default=None, help="Stop starting new items after N seconds")

    subparsers.add_parser("stats", help="Show queue statistics and worker status")

    purge = subparsers.add_parser("purge", parents=[records_parent], help="Remove all queue items of a service")
    purge.add_argument("service_uid", type=int, help="Indexing service uid")

    enqueue_all = subparsers.add_parser(
        "enqueue-all", parents=[records_parent], help="Queue every eligible record"
    )
    enqueue_all.add_argument("--service-uid", type=int, default=None, help="Restrict to one indexing service")

    detect = subparsers.add_parser(
        "detect-deletions", parents=[records_parent], help="Remove records no longer eligible from the index"
    )
    detect.add_argument("--dry-run", action="store_true", help="Only report what would be removed")

    subparsers.add_parser("init-queue", help="Create the DynamoDB queue table if missing")
    subparsers.add_parser("config", help="Show the effective configuration")

    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.json_logs is not None:
        overrides["json_logs"] = args.json_logs

    try:
        settings = load_settings(args.environment, args.config, **overrides)
    except (ValueError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logger("searchsync", settings.log_level, settings.json_logs)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    try:
        if args.command == "config":
            show_config(settings)
            return

        if args.command == "init-queue":
            if settings.queue_backend != "dynamodb":
                print("The local queue backend needs no initialization")
                return
            initialize_models(settings)
            create_tables_if_not_exist()
            print(f"Queue table {settings.dynamodb_queue_table} is ready")
            return

        sys.exit(asyncio.run(run_command(args, settings)))

    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)
    except SearchSyncException as e:
        logging.error(f"Command {args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
