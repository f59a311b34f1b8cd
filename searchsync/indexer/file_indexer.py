"""
Indexer for file metadata.

Files are not page-scoped; an indexing service selects them through file
collections instead. Queue rows reference the metadata record.
"""

import logging
from typing import Any, Dict, List, Optional, Set

from ..config.settings import SyncSettings
from ..constants import FILE_METADATA_TABLE
from ..queue.repository import QueueItemRepository
from ..repository.interfaces import FileRepository, Record, RecordRepository
from ..schema.models import IndexingService, QueueItem
from ..search_engine.registry import SearchEngineFactory
from .base import AbstractIndexer
from .document_builder import DocumentListener
from .file_eligibility import is_file_eligible

logger = logging.getLogger(__name__)


class FileIndexer(AbstractIndexer):
    table = FILE_METADATA_TABLE
    title = "Files"

    def __init__(
        self,
        settings: SyncSettings,
        record_repository: RecordRepository,
        queue_repository: QueueItemRepository,
        search_engine_factory: SearchEngineFactory,
        file_repository: FileRepository,
        document_listeners: Optional[List[DocumentListener]] = None,
    ):
        super().__init__(settings, record_repository, queue_repository, search_engine_factory, document_listeners)
        self.file_repository = file_repository

    @property
    def allowed_extensions(self) -> List[str]:
        return self.settings.get_indexer_settings(self.table).extensions

    async def get_pages(self) -> Optional[Set[int]]:
        return None

    async def find_candidate_records(self, record_uids: Optional[List[int]]) -> List[Record]:
        service = self._require_indexing_service()
        files = await self.file_repository.find_files_in_collections(service.file_collections)

        wanted = set(record_uids) if record_uids is not None else None
        unique: Dict[int, Record] = {}
        for file in files:
            metadata_uid = int(file.get("metadata_uid") or 0)
            # A file may be part of several collections
            if metadata_uid in unique:
                continue
            if wanted is not None and metadata_uid not in wanted:
                continue
            unique[metadata_uid] = file
        return list(unique.values())

    def is_record_eligible(self, record: Record, pages: Optional[Set[int]] = None) -> bool:
        return is_file_eligible(record, self.allowed_extensions)

    def create_queue_item(self, record: Record) -> QueueItem:
        service = self._require_indexing_service()
        return QueueItem(
            table_name=self.table,
            record_uid=int(record["metadata_uid"]),
            service_uid=service.uid,
            changed=int(record.get("tstamp") or 0),
            priority=self.get_priority(),
        )

    async def load_related_fields(self, indexing_service: IndexingService, record: Record) -> Dict[str, Any]:
        file = await self.file_repository.find_file_by_metadata_uid(int(record["uid"]))
        if file is None:
            logger.warning(f"No file found for metadata record {record['uid']}")
            return {}

        url = file.get("public_url")
        if url and not url.startswith(("http://", "https://")):
            # Local storages return paths relative to the site root
            url = url.lstrip("/")

        return {
            "extension": file.get("extension"),
            "mime_type": file.get("mime_type"),
            "name": file.get("name"),
            "size": file.get("size"),
            "url": url,
        }
