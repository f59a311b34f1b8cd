"""Tests for the indexing queue stores."""

import pytest
from botocore.exceptions import ClientError
from pynamodb.exceptions import PutError

from searchsync.exceptions import QueueStoreException, QueueThrottlingException
from searchsync.queue import LocalQueueItemRepository, create_queue_repository
from searchsync.queue.models import QueueItemModel
from searchsync.queue.repository import DynamoDBQueueItemRepository, coalesce_items, sort_for_processing
from searchsync.schema.models import IndexingService, QueueItem
from searchsync.utils.retry import RetryConfig


def make_item(uid, table="pages", service=1, changed=0, priority=0):
    return QueueItem(table_name=table, record_uid=uid, service_uid=service, changed=changed, priority=priority)


@pytest.mark.asyncio
async def test_empty_bulk_insert_writes_nothing(queue_repository):
    """Test that an empty bulk insert returns 0 without a write statement."""
    assert await queue_repository.bulk_insert([]) == 0
    assert queue_repository.stats["write_statements"] == 0
    assert not queue_repository.queue_file.exists()


@pytest.mark.asyncio
async def test_bulk_insert_in_chunks(queue_repository):
    """Test that 1050 items land in the queue using two write statements."""
    items = [make_item(uid) for uid in range(1, 1051)]

    assert await queue_repository.bulk_insert(items) == 1050
    assert await queue_repository.count() == 1050
    assert queue_repository.stats["write_statements"] == 2


@pytest.mark.asyncio
async def test_insert_is_idempotent(queue_repository):
    """Test that inserting the same key twice keeps one row with the latest values."""
    await queue_repository.insert(make_item(1, changed=10))
    await queue_repository.insert(make_item(1, changed=20))

    items = await queue_repository.find_all_limited(10)
    assert len(items) == 1
    assert items[0].changed == 20


@pytest.mark.asyncio
async def test_bulk_insert_coalesces_duplicates(queue_repository):
    """Test that duplicates inside one bulk insert count once."""
    assert await queue_repository.bulk_insert([make_item(1), make_item(1), make_item(2)]) == 2
    assert await queue_repository.count() == 2


@pytest.mark.asyncio
async def test_processing_order(queue_repository):
    """Test priority descending, then oldest change first."""
    await queue_repository.bulk_insert(
        [
            make_item(1, changed=300),
            make_item(2, changed=100),
            make_item(3, changed=500, priority=5),
            make_item(4, changed=200),
        ]
    )

    items = await queue_repository.find_all_limited(3)
    assert [item.record_uid for item in items] == [3, 2, 4]


@pytest.mark.asyncio
async def test_delete_scoped_by_service(queue_repository):
    """Test that deleting for one service leaves other services untouched."""
    await queue_repository.bulk_insert([make_item(1, service=1), make_item(1, service=2), make_item(2, service=1)])

    await queue_repository.delete_by_table_and_record_uids("pages", [1], 1)

    remaining = {item.key for item in await queue_repository.find_all_limited(10)}
    assert remaining == {("pages", 1, 2), ("pages", 2, 1)}


@pytest.mark.asyncio
async def test_delete_without_uids_purges_table(queue_repository):
    """Test that omitting record uids removes every row of the table."""
    await queue_repository.bulk_insert([make_item(1), make_item(2), make_item(5, table="tt_content")])

    await queue_repository.delete_by_table_and_record_uids("pages")

    assert await queue_repository.find_all_by_table_name("pages") == []
    assert await queue_repository.find_all_by_table_name("tt_content") == [5]


@pytest.mark.asyncio
async def test_delete_by_indexing_service(queue_repository):
    """Test purging every row of a service."""
    await queue_repository.bulk_insert([make_item(1, service=1), make_item(2, service=2)])

    await queue_repository.delete_by_indexing_service(IndexingService(uid=1, type="pages"))

    assert [item.service_uid for item in await queue_repository.find_all_limited(10)] == [2]


@pytest.mark.asyncio
async def test_remove_single_item(queue_repository):
    """Test that remove only drops the exact key."""
    await queue_repository.bulk_insert([make_item(1, service=1), make_item(1, service=2)])

    await queue_repository.remove(make_item(1, service=1))

    assert await queue_repository.count() == 1


@pytest.mark.asyncio
async def test_statistics(queue_repository):
    """Test per table counts."""
    await queue_repository.bulk_insert(
        [make_item(1), make_item(2), make_item(7, table="tt_content"), make_item(3, table="sys_file_metadata")]
    )

    assert await queue_repository.get_statistics() == [
        {"table_name": "pages", "count": 2},
        {"table_name": "sys_file_metadata", "count": 1},
        {"table_name": "tt_content", "count": 1},
    ]


@pytest.mark.asyncio
async def test_corrupt_queue_file(settings):
    """Test that an unreadable queue file raises a queue error."""
    settings.local_queue_file.parent.mkdir(parents=True, exist_ok=True)
    settings.local_queue_file.write_text("{not json")

    with pytest.raises(QueueStoreException):
        await LocalQueueItemRepository(settings).count()


@pytest.mark.asyncio
async def test_queue_survives_restart(settings):
    """Test that a second repository instance sees rows written by the first."""
    await LocalQueueItemRepository(settings).insert(make_item(9))

    assert await LocalQueueItemRepository(settings).find_all_by_table_name("pages") == [9]


def test_helpers():
    """Test duplicate coalescing and ordering helpers."""
    items = coalesce_items([make_item(1, changed=1), make_item(1, changed=2)])
    assert len(items) == 1 and items[0].changed == 2

    ordered = sort_for_processing([make_item(1, changed=5), make_item(2, changed=1, priority=1)])
    assert [item.record_uid for item in ordered] == [2, 1]


def test_factory_selects_backend(settings):
    """Test that the local backend is chosen from the settings."""
    assert isinstance(create_queue_repository(settings), LocalQueueItemRepository)


class FakeBatch:
    def __init__(self, batches):
        self.saved = []
        self.deleted = []
        batches.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def save(self, model):
        self.saved.append(model)

    def delete(self, model):
        self.deleted.append(model)


@pytest.mark.asyncio
async def test_dynamodb_bulk_insert_chunks(settings, monkeypatch):
    """Test that DynamoDB bulk inserts use one batch per 1000 items."""
    batches = []
    monkeypatch.setattr(QueueItemModel, "batch_write", lambda: FakeBatch(batches))
    repository = DynamoDBQueueItemRepository(settings)

    assert await repository.bulk_insert([]) == 0
    assert batches == []

    assert await repository.bulk_insert([make_item(uid) for uid in range(1, 1051)]) == 1050
    assert [len(batch.saved) for batch in batches] == [1000, 50]
    assert repository.stats["write_statements"] == 2
    assert batches[0].saved[0].queue_key == "pages:1:1"


@pytest.mark.asyncio
async def test_dynamodb_delete_with_full_keys(settings, monkeypatch):
    """Test that known keys are deleted without querying the table."""
    batches = []
    monkeypatch.setattr(QueueItemModel, "batch_write", lambda: FakeBatch(batches))
    repository = DynamoDBQueueItemRepository(settings)

    await repository.delete_by_table_and_record_uids("tt_content", [4, 5], 2)

    assert [model.queue_key for model in batches[0].deleted] == ["tt_content:4:2", "tt_content:5:2"]


def dynamodb_error(code, message="Rate exceeded"):
    return PutError("Failed to put item", cause=ClientError({"Error": {"Code": code, "Message": message}}, "PutItem"))


def no_delay_retries(max_attempts=3):
    return RetryConfig(max_attempts=max_attempts, base_delay=0, jitter=False)


@pytest.mark.asyncio
async def test_dynamodb_retries_throttled_calls(settings, monkeypatch):
    """Test that a throttled write is retried and then succeeds."""
    attempts = []

    def save(model, *args, **kwargs):
        attempts.append(model.queue_key)
        if len(attempts) == 1:
            raise dynamodb_error("ProvisionedThroughputExceededException")

    monkeypatch.setattr(QueueItemModel, "save", save)
    repository = DynamoDBQueueItemRepository(settings, retry_config=no_delay_retries())

    assert await repository.insert(make_item(1)) == 1
    assert attempts == ["pages:1:1", "pages:1:1"]
    assert repository.stats["items_written"] == 1
    assert repository.stats["errors_encountered"] == 1


@pytest.mark.asyncio
async def test_dynamodb_gives_up_after_max_attempts(settings, monkeypatch):
    """Test that persistent throttling surfaces as QueueThrottlingException."""
    attempts = []

    def save(model, *args, **kwargs):
        attempts.append(model.queue_key)
        raise dynamodb_error("ThrottlingException")

    monkeypatch.setattr(QueueItemModel, "save", save)
    repository = DynamoDBQueueItemRepository(settings, retry_config=no_delay_retries(max_attempts=3))

    with pytest.raises(QueueThrottlingException):
        await repository.insert(make_item(1))
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_dynamodb_does_not_retry_other_errors(settings, monkeypatch):
    """Test that a rejected request fails on the first attempt."""
    attempts = []

    def save(model, *args, **kwargs):
        attempts.append(model.queue_key)
        raise dynamodb_error("ValidationException", "Invalid key")

    monkeypatch.setattr(QueueItemModel, "save", save)
    repository = DynamoDBQueueItemRepository(settings, retry_config=no_delay_retries())

    with pytest.raises(QueueStoreException) as exc_info:
        await repository.insert(make_item(1))
    assert not isinstance(exc_info.value, QueueThrottlingException)
    assert len(attempts) == 1
