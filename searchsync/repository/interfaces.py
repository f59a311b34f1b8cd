"""
Interfaces the synchronization core needs from the CMS.

Records are plain dictionaries keyed by column name. Every record carries
at least ``uid`` and, except for file metadata, ``pid``.
"""

from typing import Any, Dict, List, Optional, Protocol

from ..constants import MAX_PAGE_TREE_DEPTH
from ..schema.models import IndexingService

Record = Dict[str, Any]


class RecordRepository(Protocol):
    async def find_record(self, table: str, uid: int) -> Optional[Record]:
        """Return the raw record, including deleted or hidden ones, or None."""
        ...

    async def find_records(self, table: str, uids: Optional[List[int]] = None) -> List[Record]:
        """Return the records with the given uids, or every record of the table."""
        ...

    async def find_pid(self, table: str, uid: int) -> Optional[int]:
        ...

    async def get_rootline(self, page_id: int) -> List[Record]:
        """Page records from ``page_id`` up to the top of the tree. Empty if the page does not exist."""
        ...

    async def get_page_ids_recursive(
        self,
        page_ids: List[int],
        depth: int = MAX_PAGE_TREE_DEPTH,
        include_self: bool = True,
        exclude_hidden: bool = False,
    ) -> List[int]:
        ...

    async def find_content_uids_by_pid(self, page_id: int) -> List[int]:
        """Uids of all non-deleted content elements placed on the page."""
        ...


class IndexingServiceRepository(Protocol):
    async def find_all(self) -> List[IndexingService]:
        ...

    async def find_by_uid(self, uid: int) -> Optional[IndexingService]:
        ...

    async def find_all_by_table_name(self, table: str) -> List[IndexingService]:
        ...


class FileRepository(Protocol):
    async def find_file_by_metadata_uid(self, metadata_uid: int) -> Optional[Record]:
        ...

    async def find_files_in_collections(self, collection_uids: List[int]) -> List[Record]:
        """Files of the given collections. A file may appear more than once."""
        ...


class SiteResolver(Protocol):
    def get_site_base_url(self, page_id: int) -> Optional[str]:
        ...

    def get_page_url(self, page_id: int) -> Optional[str]:
        ...
