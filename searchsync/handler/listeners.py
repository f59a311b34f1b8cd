"""
Listeners reacting to record and file change notifications of the CMS.
"""

import logging
from typing import Any, Dict, List, Optional

from ..config.settings import SyncSettings
from ..constants import CONTENT_TABLE, FILE_METADATA_TABLE, MAX_PAGE_TREE_DEPTH, PAGES_TABLE
from ..exceptions import RecordNotFoundException
from ..schema.events import (
    FileChangedEvent,
    RecordCreatedEvent,
    RecordDeletedEvent,
    RecordEvent,
    RecordMovedEvent,
    RecordPublishedEvent,
    RecordUpdatedEvent,
)
from .file_handler import FileChangeListener
from .record_handler import RecordHandler

logger = logging.getLogger(__name__)

NO_SEARCH_TABLES = {PAGES_TABLE, FILE_METADATA_TABLE}

SUPPORTED_EVENTS = (
    RecordCreatedEvent,
    RecordUpdatedEvent,
    RecordDeletedEvent,
    RecordMovedEvent,
    RecordPublishedEvent,
    FileChangedEvent,
)


class RecordUpdateListener:
    """
    Brings queue and index in line with the current state of a record.

    Visibility changes of a page cascade to its content elements and, when
    inherited through ``extendToSubpages``, to all subpages.
    """

    def __init__(self, record_handler: RecordHandler, settings: SyncSettings):
        self.record_handler = record_handler
        self.record_repository = record_handler.record_repository
        self.settings = settings

    def is_record_enabled(self, record: Optional[Dict[str, Any]], table: str) -> bool:
        if not record:
            return False

        schema = self.settings.get_table_schema(table)
        if schema.disabled and int(record.get(schema.disabled) or 0) != 0:
            return False
        if schema.delete and int(record.get(schema.delete) or 0) != 0:
            return False
        if table in NO_SEARCH_TABLES and int(record.get("no_search") or 0) != 0:
            return False
        return True

    @staticmethod
    def is_subpage_update_required(record: Optional[Dict[str, Any]], updated_fields: Dict[str, Any]) -> bool:
        """
        Whether the visibility inherited by subpages may have changed.

        ``record`` holds the page after the update was applied.
        """
        record = record or {}

        if "hidden" in updated_fields and "extendToSubpages" in updated_fields:
            if int(updated_fields["hidden"] or 0) == 0 and int(updated_fields["extendToSubpages"] or 0) == 0:
                return True

        # Hidden flag changed on a page passing it down
        if "hidden" in updated_fields and int(record.get("extendToSubpages") or 0) == 1:
            return True

        # Inheritance toggled on a hidden page
        return "extendToSubpages" in updated_fields and int(record.get("hidden") or 0) == 1

    async def __call__(self, table: str, uid: int, fields: Optional[Dict[str, Any]] = None) -> None:
        fields = fields or {}
        record = await self.record_repository.find_record(table, uid)

        try:
            root_page_id = await self.record_handler.get_record_root_page_id(record, table, uid)
        except RecordNotFoundException as e:
            logger.warning(f"Skipping update of {table}:{uid}: {e}")
            return

        is_enabled = self.is_record_enabled(record, table)
        await self._process_record_update(root_page_id, table, uid, is_enabled)

        if table == CONTENT_TABLE:
            page_id = record.get("pid") if record else await self.record_repository.find_pid(table, uid)
            if page_id is not None:
                await self.record_handler.process_page_of_content_element(root_page_id, int(page_id))

        if table == PAGES_TABLE:
            await self.record_handler.process_content_elements_of_page(uid, not is_enabled)

            if self.is_subpage_update_required(record, fields):
                await self._process_subpages(root_page_id, uid, is_enabled)

    async def _process_subpages(self, root_page_id: int, page_id: int, is_enabled: bool) -> None:
        sub_page_ids = await self.record_repository.get_page_ids_recursive(
            [page_id], MAX_PAGE_TREE_DEPTH, include_self=False, exclude_hidden=True
        )
        if not sub_page_ids:
            return

        logger.info(f"Reprocessing {len(sub_page_ids)} subpages of page {page_id}")
        await self._process_record_updates(root_page_id, PAGES_TABLE, sub_page_ids, is_enabled)

        for sub_page_id in sub_page_ids:
            sub_page = await self.record_repository.find_record(PAGES_TABLE, sub_page_id)
            # A subpage is only visible while its parent is
            is_sub_page_enabled = is_enabled and self.is_record_enabled(sub_page, PAGES_TABLE)
            await self.record_handler.process_content_elements_of_page(sub_page_id, not is_sub_page_enabled)

    async def _process_record_update(self, root_page_id: int, table: str, uid: int, is_enabled: bool) -> None:
        async for indexing_service, indexer in self.record_handler.create_indexer_generator(root_page_id, table):
            await self.record_handler.delete_record(indexing_service, indexer, table, uid, not is_enabled)
            if is_enabled:
                await indexer.enqueue_one(uid)

    async def _process_record_updates(
        self, root_page_id: int, table: str, uids: List[int], is_enabled: bool
    ) -> None:
        async for indexing_service, indexer in self.record_handler.create_indexer_generator(root_page_id, table):
            await self.record_handler.delete_records(indexing_service, indexer, table, uids, not is_enabled)
            if is_enabled:
                await indexer.enqueue_multiple(uids)


class RecordDeleteListener:
    """Removes a record from queue and index."""

    def __init__(self, record_handler: RecordHandler):
        self.record_handler = record_handler
        self.record_repository = record_handler.record_repository

    async def __call__(self, table: str, uid: int, pid: Optional[int] = None) -> None:
        record = await self.record_repository.find_record(table, uid)
        if record is None and pid is not None:
            record = {"uid": uid, "pid": pid}

        try:
            root_page_id = await self.record_handler.get_record_root_page_id(record, table, uid)
        except RecordNotFoundException as e:
            logger.warning(f"Skipping delete of {table}:{uid}: {e}")
            return

        async for indexing_service, indexer in self.record_handler.create_indexer_generator(root_page_id, table):
            await self.record_handler.delete_record(indexing_service, indexer, table, uid, True)

        if table == CONTENT_TABLE:
            page_id = record.get("pid") if record else None
            if page_id is not None:
                await self.record_handler.process_page_of_content_element(root_page_id, int(page_id))

        if table == PAGES_TABLE:
            await self.record_handler.process_content_elements_of_page(uid, True)


class RecordMoveListener:
    """Re-evaluates a moved record under the root of its new location."""

    def __init__(self, record_handler: RecordHandler):
        self.record_handler = record_handler
        self.record_repository = record_handler.record_repository

    async def __call__(self, table: str, uid: int, target_pid: int, previous_pid: Optional[int]) -> None:
        if target_pid == previous_pid:
            return

        record = await self.record_repository.find_record(table, uid)
        try:
            root_page_id = await self.record_handler.get_record_root_page_id(record, table, uid)
        except RecordNotFoundException as e:
            logger.warning(f"Skipping move of {table}:{uid}: {e}")
            return

        await self.record_handler.update_record_in_queue(root_page_id, table, uid)

        if table == CONTENT_TABLE and previous_pid is not None:
            await self.record_handler.process_page_of_content_element(root_page_id, previous_pid)


class RecordEventDispatcher:
    """Routes record and file change notifications to their listener."""

    def __init__(self, record_handler: RecordHandler, settings: SyncSettings):
        self.update_listener = RecordUpdateListener(record_handler, settings)
        self.delete_listener = RecordDeleteListener(record_handler)
        self.move_listener = RecordMoveListener(record_handler)
        self.file_listener = FileChangeListener(self.dispatch)

    async def dispatch(self, event: RecordEvent) -> None:
        if not isinstance(event, SUPPORTED_EVENTS):
            raise TypeError(f"Unsupported record event: {type(event).__name__}")

        if isinstance(event, FileChangedEvent):
            logger.debug(f"Dispatching {event.action.value} file {event.file.get('uid')}")
            await self.file_listener(event)
            return

        logger.debug(f"Dispatching {type(event).__name__} for {event.table}:{event.uid}")

        if isinstance(event, (RecordCreatedEvent, RecordUpdatedEvent)):
            await self.update_listener(event.table, event.uid, event.fields)
        elif isinstance(event, RecordPublishedEvent):
            # A published workspace version is handled like an update
            await self.dispatch(RecordUpdatedEvent(table=event.table, uid=event.uid))
        elif isinstance(event, RecordDeletedEvent):
            await self.delete_listener(event.table, event.uid, event.pid)
        else:
            await self.move_listener(event.table, event.uid, event.target_pid, event.previous_pid)
