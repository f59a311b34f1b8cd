"""
Local file-based indexing queue.

Provides the same interface as DynamoDBQueueItemRepository but stores the
queue in a JSON file, for development and testing.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..config.settings import SyncSettings
from ..constants import QUEUE_INSERT_CHUNK_SIZE
from ..exceptions import QueueStoreException
from ..schema.models import IndexingService, QueueItem
from .repository import build_statistics, coalesce_items, sort_for_processing

logger = logging.getLogger(__name__)


class LocalQueueData(BaseModel):
    """On-disk layout of the queue file"""

    items: Dict[str, QueueItem] = {}


def _item_key(table_name: str, record_uid: int, service_uid: int) -> str:
    return f"{table_name}:{record_uid}:{service_uid}"


class LocalQueueItemRepository:
    """
    File-based queue store.

    Every public call reads the file, applies the change and writes it back
    under a thread lock.
    """

    def __init__(self, settings: SyncSettings, queue_file: Optional[Path] = None):
        self.settings = settings
        self.queue_file = Path(queue_file or settings.local_queue_file)

        self.queue_file.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()

        self.stats = {
            "items_written": 0,
            "items_deleted": 0,
            "write_statements": 0,
        }

        logger.info(f"Initialized local queue repository at {self.queue_file}")

    def _read(self) -> LocalQueueData:
        if not self.queue_file.exists():
            return LocalQueueData()

        try:
            with open(self.queue_file, "r", encoding="utf-8") as f:
                return LocalQueueData(**json.load(f))
        except json.JSONDecodeError as e:
            raise QueueStoreException(f"Corrupt queue file {self.queue_file}: {e}", e)

    def _write(self, data: LocalQueueData) -> None:
        try:
            with open(self.queue_file, "w", encoding="utf-8") as f:
                json.dump(data.model_dump(mode="json"), f, indent=2)
        except OSError as e:
            raise QueueStoreException(f"Error writing queue file {self.queue_file}: {e}", e)

    async def insert(self, item: QueueItem) -> int:
        with self._lock:
            data = self._read()
            data.items[_item_key(*item.key)] = item
            self._write(data)
            self.stats["write_statements"] += 1
            self.stats["items_written"] += 1
        return 1

    async def bulk_insert(self, items: List[QueueItem]) -> int:
        if not items:
            return 0

        unique = coalesce_items(items)
        with self._lock:
            data = self._read()
            for i in range(0, len(unique), QUEUE_INSERT_CHUNK_SIZE):
                chunk = unique[i : i + QUEUE_INSERT_CHUNK_SIZE]
                for item in chunk:
                    data.items[_item_key(*item.key)] = item
                self.stats["write_statements"] += 1
                self.stats["items_written"] += len(chunk)
            self._write(data)

        logger.debug(f"Bulk inserted {len(unique)} queue items")
        return len(unique)

    async def delete_by_table_and_record_uids(
        self, table_name: str, record_uids: Optional[List[int]] = None, service_uid: int = 0
    ) -> None:
        wanted = set(record_uids or [])
        with self._lock:
            data = self._read()
            doomed = [
                key
                for key, item in data.items.items()
                if item.table_name == table_name
                and (not wanted or item.record_uid in wanted)
                and (not service_uid or item.service_uid == service_uid)
            ]
            if not doomed:
                return
            for key in doomed:
                del data.items[key]
            self._write(data)
            self.stats["items_deleted"] += len(doomed)

    async def delete_by_indexing_service(self, indexing_service: IndexingService) -> None:
        with self._lock:
            data = self._read()
            doomed = [key for key, item in data.items.items() if item.service_uid == indexing_service.uid]
            for key in doomed:
                del data.items[key]
            self._write(data)
            self.stats["items_deleted"] += len(doomed)

        logger.info(f"Purged {len(doomed)} queue items of indexing service {indexing_service.uid}")

    async def find_all_limited(self, limit: int) -> List[QueueItem]:
        with self._lock:
            items = list(self._read().items.values())
        return sort_for_processing(items)[:limit]

    async def find_all_by_table_name(self, table_name: str) -> List[int]:
        with self._lock:
            items = self._read().items.values()
            return sorted({item.record_uid for item in items if item.table_name == table_name})

    async def remove(self, item: QueueItem) -> None:
        with self._lock:
            data = self._read()
            if data.items.pop(_item_key(*item.key), None) is None:
                return
            self._write(data)
            self.stats["items_deleted"] += 1

    async def count(self) -> int:
        with self._lock:
            return len(self._read().items)

    async def get_statistics(self) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._read().items.values())
        return build_statistics(items)
