"""
Queue worker draining the indexing queue into the search engines.

A drain loads a batch of queue items, pushes each record to the search
engine of its indexing service and removes the item once the engine
acknowledged it. Anything not confirmed stays queued for the next run.
"""

import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..exceptions import RateLimitException
from ..indexer.registry import IndexerFactory
from ..queue.repository import QueueItemRepository
from ..queue.status import QueueStatusService
from ..repository.interfaces import IndexingServiceRepository, RecordRepository
from ..schema.models import IndexingService, QueueItem
from ..utils.logging import get_logger, log_sync_event
from ..utils.retry import RetryConfig, rate_limit_retry_config

logger = get_logger(__name__)

# Algolia rejects records above its size limit; retrying cannot succeed
RECORD_TOO_BIG_MARKER = "Record is too big"


class ItemFailure(BaseModel):
    table_name: str
    record_uid: int
    service_uid: int
    error: str


class ProcessingReport(BaseModel):
    total: int = 0
    indexed: int = 0
    skipped: int = 0
    failed: int = 0
    failures: List[ItemFailure] = Field(default_factory=list)
    rate_limited: bool = False
    backoff_seconds: float = 0.0
    skipped_backoff: bool = False
    timed_out: bool = False
    progress: float = 0.0
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def processed(self) -> int:
        return self.indexed + self.skipped + self.failed


class QueueWorker:
    """
    Sequential drain loop.

    Items are grouped by indexing service, each group in queue order
    (priority descending, then oldest change first).
    """

    def __init__(
        self,
        queue_repository: QueueItemRepository,
        indexer_factory: IndexerFactory,
        indexing_service_repository: IndexingServiceRepository,
        record_repository: RecordRepository,
        status_service: Optional[QueueStatusService] = None,
        retry_config: Optional[RetryConfig] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
    ):
        self.queue_repository = queue_repository
        self.indexer_factory = indexer_factory
        self.indexing_service_repository = indexing_service_repository
        self.record_repository = record_repository
        self.status_service = status_service
        self.retry_config = retry_config or rate_limit_retry_config(30.0, 3600.0)
        self.progress_callback = progress_callback

        self.progress = 0.0
        self._rate_limit_streak = 0

        self.stats = {
            "drains": 0,
            "items_indexed": 0,
            "items_failed": 0,
            "items_skipped": 0,
            "rate_limits": 0,
        }

    @staticmethod
    def group_by_service(items: List[QueueItem]) -> List[QueueItem]:
        groups: Dict[int, List[QueueItem]] = {}
        for item in items:
            groups.setdefault(item.service_uid, []).append(item)
        return [item for group in groups.values() for item in group]

    def _update_progress(self, processed: int, total: int) -> None:
        self.progress = 100.0 if total == 0 else round(processed / total * 100.0, 2)
        if self.status_service:
            self.status_service.update_progress(processed, total)
        if self.progress_callback:
            self.progress_callback(self.progress)

    def _backoff_remaining(self) -> float:
        if self.status_service is None:
            return 0.0
        return self.status_service.get_backoff_remaining()

    def _apply_backoff(self) -> float:
        streak = self.status_service.get_rate_limit_streak() if self.status_service else self._rate_limit_streak
        delay = self.retry_config.calculate_delay(streak)

        self._rate_limit_streak = streak + 1
        if self.status_service:
            self.status_service.record_rate_limit(delay)
        return delay

    def _reset_backoff(self) -> None:
        self._rate_limit_streak = 0
        if self.status_service:
            self.status_service.reset_rate_limit()

    async def drain(self, batch_size: int, max_runtime: Optional[float] = None) -> ProcessingReport:
        """
        Process up to ``batch_size`` queue items.

        Args:
            batch_size: Maximum number of items to load
            max_runtime: Seconds after which no further item is started

        Returns:
            ProcessingReport of this run
        """
        report = ProcessingReport()
        self.stats["drains"] += 1

        remaining = self._backoff_remaining()
        if remaining > 0:
            log_sync_event(logger, "drain_skipped_warning", backoff_seconds=round(remaining, 1))
            report.skipped_backoff = True
            report.backoff_seconds = remaining
            report.finished_at = datetime.now(timezone.utc)
            return report

        items = self.group_by_service(await self.queue_repository.find_all_limited(batch_size))
        report.total = len(items)
        log_sync_event(logger, "drain_started", items=report.total, batch_size=batch_size)

        started = time.monotonic()
        services: Dict[int, Optional[IndexingService]] = {}
        self._update_progress(0, report.total)

        for position, item in enumerate(items):
            if max_runtime is not None and time.monotonic() - started >= max_runtime:
                report.timed_out = True
                break

            if item.service_uid not in services:
                services[item.service_uid] = await self.indexing_service_repository.find_by_uid(item.service_uid)

            await self._process_item(item, services[item.service_uid], report)
            if report.rate_limited:
                break

            self._update_progress(position + 1, report.total)

        if not report.rate_limited and report.indexed:
            self._reset_backoff()
        if self.status_service:
            self.status_service.set_last_execution_time()

        report.progress = self.progress
        report.finished_at = datetime.now(timezone.utc)

        log_sync_event(
            logger,
            "drain_finished",
            indexed=report.indexed,
            skipped=report.skipped,
            failed=report.failed,
            rate_limited=report.rate_limited,
            timed_out=report.timed_out,
        )
        return report

    async def _process_item(
        self, item: QueueItem, indexing_service: Optional[IndexingService], report: ProcessingReport
    ) -> None:
        indexer = self.indexer_factory.make_instance_by_type(item.table_name)
        if indexer is None or indexing_service is None:
            # Nothing can ever index this item
            log_sync_event(
                logger,
                "item_orphaned_warning",
                table=item.table_name,
                uid=item.record_uid,
                service=item.service_uid,
            )
            await self.queue_repository.remove(item)
            report.skipped += 1
            self.stats["items_skipped"] += 1
            return

        record = await self.record_repository.find_record(item.table_name, item.record_uid)
        if record is None:
            log_sync_event(logger, "item_vanished_warning", table=item.table_name, uid=item.record_uid)
            await self.queue_repository.remove(item)
            report.skipped += 1
            self.stats["items_skipped"] += 1
            return

        try:
            indexed = await indexer.with_indexing_service(indexing_service).index_record(indexing_service, record)
        except RateLimitException as e:
            delay = self._apply_backoff()
            report.rate_limited = True
            report.backoff_seconds = delay
            self.stats["rate_limits"] += 1
            log_sync_event(
                logger, "rate_limited", table=item.table_name, uid=item.record_uid, backoff=delay, error=str(e)
            )
            return
        except Exception as e:
            self._record_failure(item, str(e), report)
            if RECORD_TOO_BIG_MARKER in str(e):
                await self.queue_repository.remove(item)
            return

        if not indexed:
            self._record_failure(item, "search engine did not acknowledge the update", report)
            return

        await self.queue_repository.remove(item)
        report.indexed += 1
        self.stats["items_indexed"] += 1
        log_sync_event(logger, "item_indexed", table=item.table_name, uid=item.record_uid, service=item.service_uid)

    def _record_failure(self, item: QueueItem, error: str, report: ProcessingReport) -> None:
        report.failed += 1
        report.failures.append(
            ItemFailure(
                table_name=item.table_name,
                record_uid=item.record_uid,
                service_uid=item.service_uid,
                error=error,
            )
        )
        self.stats["items_failed"] += 1
        log_sync_event(
            logger, "item_failed", table=item.table_name, uid=item.record_uid, service=item.service_uid, error=error
        )
