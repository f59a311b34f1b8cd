"""
Indexer for content elements.
"""

from ..constants import CONTENT_TABLE
from ..repository.interfaces import Record
from .base import AbstractIndexer


class ContentIndexer(AbstractIndexer):
    table = CONTENT_TABLE
    title = "Content elements"

    def is_type_eligible(self, record: Record) -> bool:
        types = self.indexing_service.content_element_types if self.indexing_service else []
        if types and record.get("CType") not in types:
            return False
        return True
