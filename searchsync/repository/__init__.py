"""
Lookup interfaces towards the CMS and their in-memory implementations.
"""

from .interfaces import FileRepository, IndexingServiceRepository, RecordRepository, SiteResolver
from .memory import (
    InMemoryFileRepository,
    InMemoryIndexingServiceRepository,
    InMemoryRecordRepository,
    InMemorySiteResolver,
)

__all__ = [
    "FileRepository",
    "InMemoryFileRepository",
    "InMemoryIndexingServiceRepository",
    "InMemoryRecordRepository",
    "InMemorySiteResolver",
    "IndexingServiceRepository",
    "RecordRepository",
    "SiteResolver",
]
