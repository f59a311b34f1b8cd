"""
Persistent indexing queue.

Queue items are keyed by (table, record uid, indexing service uid) and are
stored either in DynamoDB or, for local development, in a JSON file.
"""

from ..config.settings import SyncSettings
from .local_repository import LocalQueueItemRepository
from .repository import DynamoDBQueueItemRepository, QueueItemRepository
from .status import QueueStatus, QueueStatusService

__all__ = [
    "DynamoDBQueueItemRepository",
    "LocalQueueItemRepository",
    "QueueItemRepository",
    "QueueStatus",
    "QueueStatusService",
    "create_queue_repository",
]


def create_queue_repository(settings: SyncSettings) -> QueueItemRepository:
    """
    Factory function to create the queue store configured for the environment.

    Args:
        settings: SyncSettings instance

    Returns:
        LocalQueueItemRepository or DynamoDBQueueItemRepository
    """
    if settings.queue_backend == "local":
        return LocalQueueItemRepository(settings)
    return DynamoDBQueueItemRepository(settings)
