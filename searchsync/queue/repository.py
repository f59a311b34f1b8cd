"""
DynamoDB-backed indexing queue repository.
"""

import logging
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Protocol

from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError, ReadTimeoutError
from pynamodb.exceptions import PynamoDBException

from ..config.settings import SyncSettings
from ..constants import QUEUE_INSERT_CHUNK_SIZE
from ..exceptions import QueueConnectionException, QueueStoreException, QueueThrottlingException
from ..schema.models import IndexingService, QueueItem
from ..utils.retry import DATABASE_RETRY_CONFIG, AsyncRetrier, RetryConfig, RetryError
from .models import QueueItemModel, initialize_models

logger = logging.getLogger(__name__)


THROTTLING_ERROR_CODES = {"ProvisionedThroughputExceededException", "ThrottlingException", "RequestLimitExceeded"}

RETRYABLE_EXCEPTIONS = (QueueThrottlingException, QueueConnectionException)


class QueueItemRepository(Protocol):
    """Contract shared by every queue store."""

    async def insert(self, item: QueueItem) -> int:
        ...

    async def bulk_insert(self, items: List[QueueItem]) -> int:
        ...

    async def delete_by_table_and_record_uids(
        self, table_name: str, record_uids: Optional[List[int]] = None, service_uid: int = 0
    ) -> None:
        ...

    async def delete_by_indexing_service(self, indexing_service: IndexingService) -> None:
        ...

    async def find_all_limited(self, limit: int) -> List[QueueItem]:
        ...

    async def find_all_by_table_name(self, table_name: str) -> List[int]:
        ...

    async def remove(self, item: QueueItem) -> None:
        ...

    async def count(self) -> int:
        ...

    async def get_statistics(self) -> List[Dict[str, Any]]:
        ...


def coalesce_items(items: List[QueueItem]) -> List[QueueItem]:
    """Collapse duplicates on (table, record, service); the last item wins."""
    unique: Dict[Any, QueueItem] = {}
    for item in items:
        unique[item.key] = item
    return list(unique.values())


def sort_for_processing(items: List[QueueItem]) -> List[QueueItem]:
    """Highest priority first, oldest change first within a priority."""
    return sorted(items, key=lambda item: (-item.priority, item.changed))


def build_statistics(items: List[QueueItem]) -> List[Dict[str, Any]]:
    counts = Counter(item.table_name for item in items)
    return [{"table_name": table, "count": counts[table]} for table in sorted(counts)]


class DynamoDBQueueItemRepository:
    """
    Queue store on a DynamoDB table.

    Bulk inserts are split into statements of at most 1000 items; pynamodb
    further splits each statement into BatchWriteItem requests of 25.
    """

    def __init__(self, settings: SyncSettings, retry_config: Optional[RetryConfig] = None):
        self.settings = settings
        initialize_models(settings)
        self.retrier = AsyncRetrier(retry_config or DATABASE_RETRY_CONFIG)

        self.stats = {
            "items_written": 0,
            "items_deleted": 0,
            "write_statements": 0,
            "errors_encountered": 0,
        }

        logger.info(f"DynamoDB queue repository initialized for table {settings.dynamodb_queue_table}")

    def _handle_error(self, error: Exception, operation: str) -> QueueStoreException:
        """Map storage errors to queue exceptions."""
        self.stats["errors_encountered"] += 1

        cause = getattr(error, "cause", None) or error
        if isinstance(cause, ClientError):
            error_code = cause.response.get("Error", {}).get("Code", "Unknown")
            error_message = cause.response.get("Error", {}).get("Message", str(cause))
            if error_code in THROTTLING_ERROR_CODES:
                return QueueThrottlingException(
                    f"DynamoDB throughput exceeded during {operation}: {error_message}", error
                )
            return QueueStoreException(f"DynamoDB error during {operation}: {error_message}", error)

        if isinstance(cause, (EndpointConnectionError, ReadTimeoutError, ConnectionError)):
            return QueueConnectionException(f"DynamoDB connection error during {operation}: {cause}", error)

        if isinstance(cause, NoCredentialsError):
            return QueueStoreException(f"AWS credentials not configured for DynamoDB {operation}", error)

        return QueueStoreException(f"Unexpected error during {operation}: {error}", error)

    async def _execute(self, operation: str, func: Callable[[], Any]) -> Any:
        """Run a storage call, retrying throttling and connection errors."""

        async def _attempt():
            try:
                return func()
            except (
                PynamoDBException,
                ClientError,
                EndpointConnectionError,
                ReadTimeoutError,
                NoCredentialsError,
            ) as e:
                raise self._handle_error(e, operation) from e

        _attempt.__name__ = operation

        try:
            return await self.retrier.call(_attempt, exceptions=RETRYABLE_EXCEPTIONS)
        except RetryError as e:
            raise e.last_exception

    def _write_models(self, models: List[QueueItemModel]) -> None:
        for i in range(0, len(models), QUEUE_INSERT_CHUNK_SIZE):
            chunk = models[i : i + QUEUE_INSERT_CHUNK_SIZE]
            with QueueItemModel.batch_write() as batch:
                for model in chunk:
                    batch.save(model)
            self.stats["write_statements"] += 1
            self.stats["items_written"] += len(chunk)

    def _delete_models(self, models: List[QueueItemModel]) -> None:
        for i in range(0, len(models), QUEUE_INSERT_CHUNK_SIZE):
            chunk = models[i : i + QUEUE_INSERT_CHUNK_SIZE]
            with QueueItemModel.batch_write() as batch:
                for model in chunk:
                    batch.delete(model)
            self.stats["items_deleted"] += len(chunk)

    def _scan_items(self) -> List[QueueItem]:
        return [model.to_queue_item() for model in QueueItemModel.scan()]

    async def insert(self, item: QueueItem) -> int:
        def _insert():
            QueueItemModel.from_queue_item(item).save()
            self.stats["write_statements"] += 1
            self.stats["items_written"] += 1
            return 1

        return await self._execute("insert", _insert)

    async def bulk_insert(self, items: List[QueueItem]) -> int:
        """
        Insert or replace many queue items.

        Args:
            items: Queue items, duplicates are coalesced

        Returns:
            Number of rows written, 0 for an empty input
        """
        if not items:
            return 0

        models = [QueueItemModel.from_queue_item(item) for item in coalesce_items(items)]
        await self._execute("bulk_insert", lambda: self._write_models(models))

        logger.debug(f"Bulk inserted {len(models)} queue items")
        return len(models)

    async def delete_by_table_and_record_uids(
        self, table_name: str, record_uids: Optional[List[int]] = None, service_uid: int = 0
    ) -> None:
        """
        Delete queue rows of a table.

        Args:
            table_name: Table of the records
            record_uids: Records to delete; None or empty deletes every row of the table
            service_uid: Restrict to one indexing service when non-zero
        """

        def _delete():
            if record_uids and service_uid:
                # Full keys known, no lookup needed
                models = [
                    QueueItemModel(QueueItemModel.make_key(table_name, uid, service_uid)) for uid in record_uids
                ]
            else:
                wanted = set(record_uids or [])
                models = [
                    model
                    for model in QueueItemModel.table_name_index.query(table_name)
                    if (not wanted or int(model.record_uid) in wanted)
                    and (not service_uid or int(model.service_uid) == service_uid)
                ]
            self._delete_models(models)

        await self._execute("delete_by_table_and_record_uids", _delete)

    async def delete_by_indexing_service(self, indexing_service: IndexingService) -> None:
        def _delete():
            models = list(QueueItemModel.service_index.query(indexing_service.uid))
            self._delete_models(models)
            logger.info(f"Purged {len(models)} queue items of indexing service {indexing_service.uid}")

        await self._execute("delete_by_indexing_service", _delete)

    async def find_all_limited(self, limit: int) -> List[QueueItem]:
        # DynamoDB scans are unordered, so the ordering happens client side
        items = await self._execute("find_all_limited", self._scan_items)
        return sort_for_processing(items)[:limit]

    async def find_all_by_table_name(self, table_name: str) -> List[int]:
        def _query():
            return sorted({int(model.record_uid) for model in QueueItemModel.table_name_index.query(table_name)})

        return await self._execute("find_all_by_table_name", _query)

    async def remove(self, item: QueueItem) -> None:
        def _remove():
            QueueItemModel(QueueItemModel.make_key(item.table_name, item.record_uid, item.service_uid)).delete()
            self.stats["items_deleted"] += 1

        await self._execute("remove", _remove)

    async def count(self) -> int:
        return len(await self._execute("count", self._scan_items))

    async def get_statistics(self) -> List[Dict[str, Any]]:
        return build_statistics(await self._execute("get_statistics", self._scan_items))
