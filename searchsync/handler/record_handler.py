"""
Maps record changes to indexing queue mutations.

Resolves the site root of a changed record, finds the indexing services
responsible for it and adds, refreshes or removes the corresponding queue
rows and index documents.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from ..constants import CONTENT_TABLE, FILE_METADATA_TABLE, PAGES_TABLE
from ..exceptions import MissingConfigurationException, RecordNotFoundException, SearchEngineException
from ..indexer.base import AbstractIndexer
from ..indexer.content_indexer import ContentIndexer
from ..indexer.page_indexer import PageIndexer
from ..indexer.registry import IndexerFactory
from ..repository.interfaces import IndexingServiceRepository, RecordRepository
from ..schema.models import IndexingService
from ..search_engine.base import AbstractSearchEngine
from ..search_engine.registry import SearchEngineFactory

logger = logging.getLogger(__name__)

# Tables whose records are not placed in the page tree
UNSCOPED_TABLES = {FILE_METADATA_TABLE}


class RecordHandler:
    def __init__(
        self,
        search_engine_factory: SearchEngineFactory,
        indexer_factory: IndexerFactory,
        record_repository: RecordRepository,
        indexing_service_repository: IndexingServiceRepository,
    ):
        self.search_engine_factory = search_engine_factory
        self.indexer_factory = indexer_factory
        self.record_repository = record_repository
        self.indexing_service_repository = indexing_service_repository

    async def get_root_page_id(self, page_id: int) -> int:
        """Uid of the nearest site root above (or at) the page, 0 if there is none."""
        if not page_id:
            return 0
        for page in await self.record_repository.get_rootline(page_id):
            if int(page.get("is_siteroot") or 0):
                return int(page["uid"])
        return 0

    async def get_record_root_page_id(self, record: Optional[Dict[str, Any]], table: str, uid: int) -> int:
        """
        Resolve the site root a record belongs to.

        Pages are looked up by their own uid, every other record by its pid.

        Args:
            record: The record if already loaded; its ``pid`` saves a lookup
            table: Table of the record
            uid: Uid of the record

        Returns:
            Uid of the root page; 0 for records outside the page tree

        Raises:
            RecordNotFoundException: If no site root can be resolved
        """
        if table in UNSCOPED_TABLES:
            return 0

        if table == PAGES_TABLE:
            page_id = uid
        else:
            pid = record.get("pid") if record else None
            if pid is None:
                pid = await self.record_repository.find_pid(table, uid)
            page_id = int(pid or 0)

        root_page_id = await self.get_root_page_id(page_id)
        if not root_page_id:
            raise RecordNotFoundException(f"No root page found for {table}:{uid}", table=table, uid=uid)
        return root_page_id

    async def create_indexer_generator(
        self, root_page_id: int, table: str
    ) -> AsyncIterator[Tuple[IndexingService, AbstractIndexer]]:
        """
        Yield every responsible (indexing service, bound indexer) pair.

        A fresh generator is created per call; services whose type has no
        registered indexer are skipped.
        """
        for indexing_service in await self.indexing_service_repository.find_all_by_table_name(table):
            indexer = await self._get_responsible_indexer(indexing_service, root_page_id)
            if indexer is None:
                continue
            yield indexing_service, indexer

    async def _get_responsible_indexer(
        self, indexing_service: IndexingService, root_page_id: int
    ) -> Optional[AbstractIndexer]:
        # Files are selected via collections, not via the page tree
        if indexing_service.type not in UNSCOPED_TABLES:
            if await self.get_root_page_id(indexing_service.pid) != root_page_id:
                return None

        return self.indexer_factory.make_instance_by_indexing_service(indexing_service)

    async def update_record_in_queue(self, root_page_id: int, table: str, record_uid: int) -> None:
        async for _, indexer in self.create_indexer_generator(root_page_id, table):
            # Re-evaluates eligibility; an ineligible record stays out
            await indexer.dequeue_one(record_uid)
            await indexer.enqueue_one(record_uid)

    async def process_page_of_content_element(self, root_page_id: int, page_id: int) -> None:
        """Re-queue the page of a content element for services aggregating content."""
        async for _, indexer in self.create_indexer_generator(root_page_id, PAGES_TABLE):
            if not isinstance(indexer, PageIndexer) or not indexer.is_include_content_elements():
                continue
            await indexer.dequeue_one(page_id)
            await indexer.enqueue_one(page_id)

    async def process_content_elements_of_page(self, page_id: int, remove_page_content_elements: bool) -> None:
        """
        Queue or remove all content elements of a page.

        Args:
            page_id: Page whose content elements are processed
            remove_page_content_elements: Remove them from queue and index instead of queueing
        """
        for indexing_service in await self.indexing_service_repository.find_all_by_table_name(CONTENT_TABLE):
            indexer = self.indexer_factory.make_instance_by_indexing_service(indexing_service)
            if not isinstance(indexer, ContentIndexer):
                continue

            content_uids = await self.record_repository.find_content_uids_by_pid(page_id)
            if not content_uids:
                continue

            if remove_page_content_elements:
                await self.delete_records(indexing_service, indexer, indexer.table, content_uids, True)
            else:
                await indexer.enqueue_multiple(content_uids)

    def _resolve_search_engine(self, indexing_service: IndexingService) -> Optional[AbstractSearchEngine]:
        try:
            return self.search_engine_factory.make_instance_by_search_engine_model(indexing_service.search_engine)
        except MissingConfigurationException as e:
            logger.warning(f"Search engine of indexing service {indexing_service.uid} is not configured: {e}")
            return None

    async def _delete_from_index(self, search_engine: AbstractSearchEngine, table: str, record_uid: int) -> bool:
        try:
            await search_engine.delete_from_index(table, record_uid)
        except SearchEngineException as e:
            # Queue consistency wins over the remote side
            logger.error(f"Failed to delete {table}:{record_uid} from index {search_engine.index_name}: {e}")
            return False
        return True

    async def delete_record(
        self,
        indexing_service: IndexingService,
        indexer: AbstractIndexer,
        table: str,
        record_uid: int,
        remove_from_index: bool,
    ) -> None:
        await indexer.dequeue_one(record_uid)

        if not remove_from_index:
            return

        search_engine = self._resolve_search_engine(indexing_service)
        if search_engine is None:
            return

        await self._delete_from_index(search_engine, table, record_uid)

    async def delete_records(
        self,
        indexing_service: IndexingService,
        indexer: AbstractIndexer,
        table: str,
        record_uids: List[int],
        remove_from_index: bool,
    ) -> List[int]:
        """
        Batch form of delete_record.

        Returns:
            Uids whose remote deletion failed
        """
        await indexer.dequeue_multiple(record_uids)

        if not remove_from_index:
            return []

        search_engine = self._resolve_search_engine(indexing_service)
        if search_engine is None:
            return []

        failed = []
        for record_uid in record_uids:
            if not await self._delete_from_index(search_engine, table, record_uid):
                failed.append(record_uid)
        return failed
