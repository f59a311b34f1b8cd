"""
DynamoDB model for the persistent indexing queue.

One item per (table, record uid, indexing service). The composite key is
stored as the hash key so a repeated save replaces the previous row.
"""

from __future__ import annotations

from typing import Optional

from pynamodb.attributes import NumberAttribute, UnicodeAttribute
from pynamodb.indexes import AllProjection, GlobalSecondaryIndex
from pynamodb.models import Model

from ..config.settings import SyncSettings, get_cached_settings
from ..constants import DEFAULT_QUEUE_PRIORITY
from ..schema.models import QueueItem


class TableNameIndex(GlobalSecondaryIndex["QueueItemModel"]):
    """GSI for per-table statistics and table purges."""

    class Meta:
        index_name = "TableNameIndex"
        projection = AllProjection()

    table_name = UnicodeAttribute(hash_key=True)
    record_uid = NumberAttribute(range_key=True)


class ServiceIndex(GlobalSecondaryIndex["QueueItemModel"]):
    """GSI for purging every row of one indexing service."""

    class Meta:
        index_name = "ServiceIndex"
        projection = AllProjection()

    service_uid = NumberAttribute(hash_key=True)


class QueueItemModel(Model):
    class Meta:  # type: ignore[reportIncompatibleVariableOverride]
        table_name = "searchsync-indexing-queue"
        region = "us-east-1"

        # Set to the LocalStack endpoint in devlocal
        host = None

        billing_mode = "PAY_PER_REQUEST"

    queue_key = UnicodeAttribute(hash_key=True)

    table_name = UnicodeAttribute()
    record_uid = NumberAttribute()
    service_uid = NumberAttribute()
    changed = NumberAttribute(default=0)
    priority = NumberAttribute(default=DEFAULT_QUEUE_PRIORITY)

    table_name_index = TableNameIndex()
    service_index = ServiceIndex()

    @staticmethod
    def make_key(table_name: str, record_uid: int, service_uid: int) -> str:
        return f"{table_name}:{record_uid}:{service_uid}"

    @classmethod
    def from_queue_item(cls, item: QueueItem) -> "QueueItemModel":
        return cls(
            cls.make_key(item.table_name, item.record_uid, item.service_uid),
            table_name=item.table_name,
            record_uid=item.record_uid,
            service_uid=item.service_uid,
            changed=item.changed,
            priority=item.priority,
        )

    def to_queue_item(self) -> QueueItem:
        return QueueItem(
            table_name=self.table_name,
            record_uid=int(self.record_uid),
            service_uid=int(self.service_uid),
            changed=int(self.changed or 0),
            priority=int(self.priority or 0),
        )


def initialize_models(settings: Optional[SyncSettings] = None) -> None:
    """
    Apply table name, region and endpoint from the settings.

    Must run before the first request against the queue table.
    """
    settings = settings or get_cached_settings()

    QueueItemModel.Meta.table_name = settings.dynamodb_queue_table
    QueueItemModel.Meta.region = settings.aws_region
    QueueItemModel.Meta.host = settings.localstack_endpoint if settings.environment == "devlocal" else None


def create_tables_if_not_exist() -> None:
    """Create the queue table if it doesn't exist."""
    if not QueueItemModel.exists():
        QueueItemModel.create_table(wait=True)
