from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from ..constants import DEFAULT_QUEUE_PRIORITY


class TableSchema(BaseModel):
    """Control columns of a record table. ``None`` disables the check."""

    crdate: Optional[str] = "crdate"
    tstamp: Optional[str] = "tstamp"
    delete: Optional[str] = "deleted"
    disabled: Optional[str] = "hidden"
    starttime: Optional[str] = "starttime"


class SearchEngine(BaseModel):
    uid: int = 0
    engine: str
    index_name: str
    title: str = ""


class IndexingService(BaseModel):
    uid: int
    pid: int = 0
    title: str = ""
    type: str
    search_engine: Optional[SearchEngine] = None
    include_content_elements: bool = False
    content_element_types: List[str] = Field(default_factory=list)
    pages_doktype: List[int] = Field(default_factory=list)
    pages_single: List[int] = Field(default_factory=list)
    pages_recursive: List[int] = Field(default_factory=list)
    file_collections: List[int] = Field(default_factory=list)
    hidden: bool = False
    deleted: bool = False


class QueueItem(BaseModel):
    table_name: str
    record_uid: int
    service_uid: int
    changed: int = 0
    priority: int = DEFAULT_QUEUE_PRIORITY

    @property
    def key(self) -> Tuple[str, int, int]:
        return self.table_name, self.record_uid, self.service_uid
