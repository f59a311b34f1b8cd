"""
Pydantic schemas shared across the synchronization service.
"""

from .events import (
    FileChangedEvent,
    FileEventAction,
    RecordCreatedEvent,
    RecordDeletedEvent,
    RecordEvent,
    RecordMovedEvent,
    RecordPublishedEvent,
    RecordUpdatedEvent,
)
from .models import IndexingService, QueueItem, SearchEngine, TableSchema

__all__ = [
    "FileChangedEvent",
    "FileEventAction",
    "IndexingService",
    "QueueItem",
    "RecordCreatedEvent",
    "RecordDeletedEvent",
    "RecordEvent",
    "RecordMovedEvent",
    "RecordPublishedEvent",
    "RecordUpdatedEvent",
    "SearchEngine",
    "TableSchema",
]
