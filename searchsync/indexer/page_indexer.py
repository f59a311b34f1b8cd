"""
Indexer for pages.
"""

from typing import Any, Dict

from ..constants import CONTENT_TABLE, PAGES_TABLE
from ..repository.interfaces import Record
from ..schema.models import IndexingService
from .base import AbstractIndexer
from .content_extractor import clean_html


class PageIndexer(AbstractIndexer):
    table = PAGES_TABLE
    title = "Pages"

    def is_include_content_elements(self) -> bool:
        return bool(self.indexing_service and self.indexing_service.include_content_elements)

    def is_type_eligible(self, record: Record) -> bool:
        # Pages flagged "no_search" never go into an index
        if int(record.get("no_search") or 0) != 0:
            return False

        doktypes = self.indexing_service.pages_doktype if self.indexing_service else []
        if doktypes and int(record.get("doktype") or 0) not in doktypes:
            return False
        return True

    async def load_related_fields(self, indexing_service: IndexingService, record: Record) -> Dict[str, Any]:
        if not indexing_service.include_content_elements:
            return {}
        return {"content": await self._get_page_content(int(record["uid"]))}

    async def _get_page_content(self, page_id: int) -> str:
        """Text of the visible content elements of a page, in their mapped columns."""
        columns = list(self.settings.get_indexer_settings(CONTENT_TABLE).fields)
        if not columns:
            return ""

        schema = self.settings.get_table_schema(CONTENT_TABLE)
        uids = await self.record_repository.find_content_uids_by_pid(page_id)
        rows = await self.record_repository.find_records(CONTENT_TABLE, uids)

        parts = []
        for row in rows:
            if schema.disabled and int(row.get(schema.disabled) or 0):
                continue
            for column in columns:
                value = row.get(column)
                if value not in (None, ""):
                    parts.append(str(value))

        return clean_html("\n".join(parts))
