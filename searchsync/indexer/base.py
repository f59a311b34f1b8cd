"""
Base class of the per-table indexers.

An indexer knows which records of its table are eligible for an indexing
service, keeps their queue rows in sync and pushes single records to the
service's search engine.
"""

import copy
import logging
from abc import ABC
from typing import Any, Dict, List, Optional, Set

from ..config.settings import SyncSettings
from ..constants import DEFAULT_QUEUE_PRIORITY, MAX_PAGE_TREE_DEPTH, PAGES_TABLE
from ..exceptions import MissingIndexingServiceException
from ..model.document import Document
from ..queue.repository import QueueItemRepository
from ..repository.interfaces import Record, RecordRepository
from ..schema.models import IndexingService, QueueItem
from ..search_engine.registry import SearchEngineFactory
from .document_builder import DocumentBuilder, DocumentListener

logger = logging.getLogger(__name__)


class AbstractIndexer(ABC):
    """
    Shared queue and indexing logic.

    Indexers are configured through ``with_*`` methods which return copies,
    so the instance cached by the factory is never bound to a service.
    """

    table: str = ""
    title: str = ""

    def __init__(
        self,
        settings: SyncSettings,
        record_repository: RecordRepository,
        queue_repository: QueueItemRepository,
        search_engine_factory: SearchEngineFactory,
        document_listeners: Optional[List[DocumentListener]] = None,
    ):
        self.settings = settings
        self.record_repository = record_repository
        self.queue_repository = queue_repository
        self.search_engine_factory = search_engine_factory
        self.document_listeners: List[DocumentListener] = list(document_listeners or [])

        self.indexing_service: Optional[IndexingService] = None
        self.exclude_hidden_pages = False

    def with_indexing_service(self, indexing_service: IndexingService) -> "AbstractIndexer":
        clone = copy.copy(self)
        clone.indexing_service = indexing_service
        return clone

    def with_exclude_hidden_pages(self, exclude_hidden_pages: bool) -> "AbstractIndexer":
        clone = copy.copy(self)
        clone.exclude_hidden_pages = exclude_hidden_pages
        return clone

    def _require_indexing_service(self) -> IndexingService:
        if self.indexing_service is None:
            raise MissingIndexingServiceException()
        return self.indexing_service

    # Queue handling

    async def dequeue_one(self, record_uid: int) -> "AbstractIndexer":
        service = self._require_indexing_service()
        await self.queue_repository.delete_by_table_and_record_uids(self.table, [record_uid], service.uid)
        return self

    async def dequeue_multiple(self, record_uids: List[int]) -> "AbstractIndexer":
        service = self._require_indexing_service()
        # An empty uid list would purge the whole table
        if record_uids:
            await self.queue_repository.delete_by_table_and_record_uids(self.table, record_uids, service.uid)
        return self

    async def dequeue_all(self) -> "AbstractIndexer":
        service = self._require_indexing_service()
        await self.queue_repository.delete_by_indexing_service(service)
        return self

    async def enqueue_one(self, record_uid: int) -> int:
        self._require_indexing_service()
        items = await self._build_queue_items([record_uid])
        if not items:
            return 0
        return await self.queue_repository.insert(items[0])

    async def enqueue_multiple(self, record_uids: List[int]) -> int:
        self._require_indexing_service()
        if not record_uids:
            return 0
        return await self.queue_repository.bulk_insert(await self._build_queue_items(record_uids))

    async def enqueue_all(self) -> int:
        self._require_indexing_service()
        count = await self.queue_repository.bulk_insert(await self._build_queue_items(None))
        logger.info(f"Enqueued {count} {self.table} records for indexing service {self.indexing_service.uid}")
        return count

    async def _build_queue_items(self, record_uids: Optional[List[int]]) -> List[QueueItem]:
        records = await self.find_eligible_records(record_uids)
        return [self.create_queue_item(record) for record in records]

    def create_queue_item(self, record: Record) -> QueueItem:
        service = self._require_indexing_service()
        schema = self.settings.get_table_schema(self.table)

        changed = 0
        if schema.tstamp:
            changed = int(record.get(schema.tstamp) or 0)
        if schema.starttime:
            changed = max(changed, int(record.get(schema.starttime) or 0))

        return QueueItem(
            table_name=self.table,
            record_uid=int(record["uid"]),
            service_uid=service.uid,
            changed=changed,
            priority=self.get_priority(),
        )

    def get_priority(self) -> int:
        return DEFAULT_QUEUE_PRIORITY

    # Eligibility

    async def find_eligible_records(self, record_uids: Optional[List[int]] = None) -> List[Record]:
        """
        Records of the table that belong into the bound service's index.

        Args:
            record_uids: Restrict to these records; None checks the whole table
        """
        candidates = await self.find_candidate_records(record_uids)
        pages = await self.get_pages()
        return [record for record in candidates if self.is_record_eligible(record, pages)]

    async def find_candidate_records(self, record_uids: Optional[List[int]]) -> List[Record]:
        return await self.record_repository.find_records(self.table, record_uids)

    async def get_pages(self) -> Optional[Set[int]]:
        """Page scope of the bound service, None when unrestricted."""
        service = self._require_indexing_service()

        page_ids = list(service.pages_single)
        if service.pages_recursive:
            page_ids.extend(
                await self.record_repository.get_page_ids_recursive(
                    service.pages_recursive,
                    MAX_PAGE_TREE_DEPTH,
                    include_self=True,
                    exclude_hidden=self.exclude_hidden_pages,
                )
            )

        scope = {page_id for page_id in page_ids if page_id}
        return scope or None

    def is_record_eligible(self, record: Record, pages: Optional[Set[int]] = None) -> bool:
        schema = self.settings.get_table_schema(self.table)

        if schema.delete and int(record.get(schema.delete) or 0):
            return False
        if schema.disabled and int(record.get(schema.disabled) or 0):
            return False

        if pages is not None:
            page_column = "uid" if self.table == PAGES_TABLE else "pid"
            if int(record.get(page_column) or 0) not in pages:
                return False

        return self.is_type_eligible(record)

    def is_type_eligible(self, record: Record) -> bool:
        """Table specific constraints, overridden by the concrete indexers."""
        return True

    # Indexing

    async def load_related_fields(self, indexing_service: IndexingService, record: Record) -> Dict[str, Any]:
        """Extra document fields that need lookups beyond the record itself."""
        return {}

    async def build_document(self, indexing_service: IndexingService, record: Record) -> Optional[Document]:
        builder = DocumentBuilder(self.settings, self.document_listeners)
        extra_fields = await self.load_related_fields(indexing_service, record)
        return builder.build(self, record, indexing_service, extra_fields)

    async def index_record(self, indexing_service: IndexingService, record: Record) -> bool:
        """
        Push one record to the search engine of the indexing service.

        Args:
            indexing_service: Service whose engine and index receive the document
            record: Raw record

        Returns:
            True if the engine acknowledged the update, False when no engine is configured

        Raises:
            RateLimitException: If the engine throttles the request
            SearchEngineException: On any other remote failure
        """
        search_engine = self.search_engine_factory.make_instance_by_search_engine_model(
            indexing_service.search_engine
        )
        if search_engine is None:
            logger.warning(f"Indexing service {indexing_service.uid} has no usable search engine")
            return False

        document = await self.build_document(indexing_service, record)
        if document is None:
            return False

        await search_engine.index_open(indexing_service.search_engine.index_name)
        try:
            result = await search_engine.document_update(document)
            await search_engine.index_commit()
        finally:
            await search_engine.index_close()

        return result
