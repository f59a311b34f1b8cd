"""
In-memory implementations of the CMS lookup interfaces.

Used by the local runner (JSON snapshots of the CMS tables) and by tests.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..constants import CONTENT_TABLE, MAX_PAGE_TREE_DEPTH, PAGES_TABLE
from ..schema.models import IndexingService
from .interfaces import Record

logger = logging.getLogger(__name__)


class InMemoryRecordRepository:
    """Record storage backed by dictionaries: table -> uid -> record."""

    def __init__(self, tables: Optional[Dict[str, Iterable[Record]]] = None):
        self._tables: Dict[str, Dict[int, Record]] = {}
        for table, records in (tables or {}).items():
            for record in records:
                self.add_record(table, record)

    def add_record(self, table: str, record: Record) -> None:
        self._tables.setdefault(table, {})[int(record["uid"])] = dict(record)

    def update_record(self, table: str, uid: int, **fields: Any) -> None:
        self._tables[table][uid].update(fields)

    def remove_record(self, table: str, uid: int) -> None:
        self._tables.get(table, {}).pop(uid, None)

    async def find_record(self, table: str, uid: int) -> Optional[Record]:
        record = self._tables.get(table, {}).get(uid)
        return dict(record) if record is not None else None

    async def find_records(self, table: str, uids: Optional[List[int]] = None) -> List[Record]:
        rows = self._tables.get(table, {})
        if uids is None:
            return [dict(row) for row in rows.values()]
        return [dict(rows[uid]) for uid in uids if uid in rows]

    async def find_pid(self, table: str, uid: int) -> Optional[int]:
        record = self._tables.get(table, {}).get(uid)
        if record is None:
            return None
        return int(record.get("pid") or 0)

    def rootline(self, page_id: int) -> List[Record]:
        pages = self._tables.get(PAGES_TABLE, {})
        line: List[Record] = []
        seen = set()
        current = page_id
        while current and current in pages and current not in seen:
            seen.add(current)
            page = pages[current]
            line.append(dict(page))
            current = int(page.get("pid") or 0)
        return line

    async def get_rootline(self, page_id: int) -> List[Record]:
        return self.rootline(page_id)

    async def get_page_ids_recursive(
        self,
        page_ids: List[int],
        depth: int = MAX_PAGE_TREE_DEPTH,
        include_self: bool = True,
        exclude_hidden: bool = False,
    ) -> List[int]:
        pages = self._tables.get(PAGES_TABLE, {})
        result: List[int] = []

        def usable(page: Record) -> bool:
            if page.get("deleted"):
                return False
            return not (exclude_hidden and page.get("hidden"))

        for page_id in page_ids:
            start = pages.get(page_id)
            if start is None:
                continue
            # The start page itself is only filtered when it is part of the result
            if include_self:
                if not usable(start):
                    continue
                result.append(page_id)

            level = [page_id]
            for _ in range(depth):
                children = [
                    uid for uid, page in pages.items() if int(page.get("pid") or 0) in level and usable(page)
                ]
                if not children:
                    break
                result.extend(children)
                level = children

        # Overlapping trees must not yield duplicates
        return list(dict.fromkeys(result))

    async def find_content_uids_by_pid(self, page_id: int) -> List[int]:
        rows = self._tables.get(CONTENT_TABLE, {})
        return [
            uid
            for uid, row in sorted(rows.items(), key=lambda item: item[1].get("sorting", 0))
            if int(row.get("pid") or 0) == page_id and not row.get("deleted")
        ]


class InMemoryIndexingServiceRepository:
    def __init__(self, services: Optional[Iterable[IndexingService]] = None):
        self._services: Dict[int, IndexingService] = {service.uid: service for service in services or []}

    def add(self, service: IndexingService) -> None:
        self._services[service.uid] = service

    async def find_all(self) -> List[IndexingService]:
        return [service for service in self._services.values() if not service.hidden and not service.deleted]

    async def find_by_uid(self, uid: int) -> Optional[IndexingService]:
        service = self._services.get(uid)
        if service is None or service.deleted:
            return None
        return service

    async def find_all_by_table_name(self, table: str) -> List[IndexingService]:
        return [service for service in await self.find_all() if service.type == table]


class InMemoryFileRepository:
    """Files keyed by metadata uid plus a collection -> metadata uids index."""

    def __init__(
        self,
        files: Optional[Iterable[Record]] = None,
        collections: Optional[Dict[int, List[int]]] = None,
    ):
        self._files: Dict[int, Record] = {int(f["metadata_uid"]): dict(f) for f in files or [] if f.get("metadata_uid")}
        self._collections: Dict[int, List[int]] = {int(k): list(v) for k, v in (collections or {}).items()}

    async def find_file_by_metadata_uid(self, metadata_uid: int) -> Optional[Record]:
        found = self._files.get(metadata_uid)
        return dict(found) if found is not None else None

    async def find_files_in_collections(self, collection_uids: List[int]) -> List[Record]:
        files: List[Record] = []
        for collection_uid in collection_uids:
            for metadata_uid in self._collections.get(collection_uid, []):
                if metadata_uid in self._files:
                    files.append(dict(self._files[metadata_uid]))
        return files


class InMemorySiteResolver:
    """Resolves site base URLs from a ``root page uid -> base URL`` map."""

    def __init__(self, record_repository: InMemoryRecordRepository, sites: Dict[int, str]):
        self.record_repository = record_repository
        self.sites = sites

    def _site_root(self, page_id: int) -> Optional[int]:
        for page in self.record_repository.rootline(page_id):
            if int(page["uid"]) in self.sites:
                return int(page["uid"])
        return None

    def get_site_base_url(self, page_id: int) -> Optional[str]:
        root = self._site_root(page_id)
        if root is None:
            return None
        return self.sites[root]

    def get_page_url(self, page_id: int) -> Optional[str]:
        base_url = self.get_site_base_url(page_id)
        if base_url is None:
            return None
        rootline = self.record_repository.rootline(page_id)
        slug = rootline[0].get("slug") if rootline else None
        if not slug:
            slug = f"/?id={page_id}"
        return base_url.rstrip("/") + "/" + slug.lstrip("/")


@dataclass
class InMemoryBackend:
    """All in-memory repositories built from one snapshot."""

    records: InMemoryRecordRepository
    indexing_services: InMemoryIndexingServiceRepository
    files: InMemoryFileRepository
    sites: InMemorySiteResolver
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], sites: Optional[Dict[int, str]] = None) -> "InMemoryBackend":
        """
        Build repositories from a snapshot dictionary.

        Expected keys: ``records`` (table -> list of rows), ``indexing_services``,
        ``files`` and ``file_collections`` (collection uid -> metadata uids).
        A ``sites`` key in the snapshot is merged with the given site map.
        """
        records = InMemoryRecordRepository(data.get("records", {}))
        services = InMemoryIndexingServiceRepository(
            IndexingService(**service) for service in data.get("indexing_services", [])
        )
        files = InMemoryFileRepository(data.get("files", []), data.get("file_collections", {}))
        site_map = {int(k): v for k, v in data.get("sites", {}).items()}
        site_map.update(sites or {})
        return cls(
            records=records,
            indexing_services=services,
            files=files,
            sites=InMemorySiteResolver(records, site_map),
            raw=data,
        )

    @classmethod
    def from_file(cls, path: Path, sites: Optional[Dict[int, str]] = None) -> "InMemoryBackend":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info(f"Loaded record snapshot from {path}")
        return cls.from_snapshot(data, sites)
