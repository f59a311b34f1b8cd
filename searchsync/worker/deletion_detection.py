"""
Detection of indexed records that no longer belong into their index.

Records can leave the scope of an indexing service without a change
notification (service reconfigured, page tree edited directly in the
database). They still exist, but must be removed from the search index.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from ..config.settings import SyncSettings
from ..exceptions import SearchSyncException
from ..handler.record_handler import RecordHandler
from ..indexer.base import AbstractIndexer
from ..indexer.registry import IndexerFactory
from ..repository.interfaces import IndexingServiceRepository, RecordRepository
from ..schema.models import IndexingService

logger = logging.getLogger(__name__)


@dataclass
class DeletionCandidates:
    indexing_service: IndexingService
    indexer: AbstractIndexer
    table: str
    record_uids: List[int] = field(default_factory=list)


class DeletionDetectionService:
    def __init__(
        self,
        settings: SyncSettings,
        indexer_factory: IndexerFactory,
        indexing_service_repository: IndexingServiceRepository,
        record_repository: RecordRepository,
    ):
        self.settings = settings
        self.indexer_factory = indexer_factory
        self.indexing_service_repository = indexing_service_repository
        self.record_repository = record_repository

    async def detect_records_for_deletion(self) -> List[DeletionCandidates]:
        """
        Existing, non-deleted records outside the scope of their services.

        Returns:
            One entry per indexing service with at least one candidate
        """
        results: List[DeletionCandidates] = []

        for indexing_service in await self.indexing_service_repository.find_all():
            indexer = self.indexer_factory.make_instance_by_indexing_service(indexing_service)
            if indexer is None:
                continue

            try:
                record_uids = await self._find_out_of_scope_uids(indexer)
            except SearchSyncException as e:
                logger.error(f"Deletion detection failed for indexing service {indexing_service.uid}: {e}")
                continue

            if record_uids:
                results.append(
                    DeletionCandidates(
                        indexing_service=indexing_service,
                        indexer=indexer,
                        table=indexer.table,
                        record_uids=record_uids,
                    )
                )

        return results

    async def _find_out_of_scope_uids(self, indexer: AbstractIndexer) -> List[int]:
        schema = self.settings.get_table_schema(indexer.table)

        existing = [
            int(record["uid"])
            for record in await self.record_repository.find_records(indexer.table)
            if not (schema.delete and int(record.get(schema.delete) or 0))
        ]
        eligible = {
            indexer.create_queue_item(record).record_uid for record in await indexer.find_eligible_records(None)
        }
        return sorted(uid for uid in existing if uid not in eligible)


class IndexDeletionRunner:
    """Removes detected records from queue and index."""

    def __init__(self, detection_service: DeletionDetectionService, record_handler: RecordHandler):
        self.detection_service = detection_service
        self.record_handler = record_handler

    async def run(self, dry_run: bool = False) -> List[DeletionCandidates]:
        candidates = await self.detection_service.detect_records_for_deletion()

        for entry in candidates:
            logger.info(
                f"{'Would remove' if dry_run else 'Removing'} {len(entry.record_uids)} {entry.table} records "
                f"from indexing service {entry.indexing_service.uid}"
            )
            if dry_run:
                continue

            failed = await self.record_handler.delete_records(
                entry.indexing_service, entry.indexer, entry.table, entry.record_uids, True
            )
            if failed:
                logger.warning(f"Remote deletion failed for {entry.table} records {failed}")

        return candidates
