"""
Record and file change notifications emitted by the CMS.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class RecordCreatedEvent(BaseModel):
    table: str
    uid: int
    fields: Dict[str, Any] = Field(default_factory=dict)


class RecordUpdatedEvent(BaseModel):
    table: str
    uid: int
    fields: Dict[str, Any] = Field(default_factory=dict)


class RecordDeletedEvent(BaseModel):
    table: str
    uid: int
    # Parent page, for records already removed from storage
    pid: Optional[int] = None


class RecordMovedEvent(BaseModel):
    table: str
    uid: int
    target_pid: int
    previous_pid: Optional[int] = None


class RecordPublishedEvent(BaseModel):
    table: str
    uid: int


class FileEventAction(str, Enum):
    """Storage operations reported for a file."""

    ADDED = "added"
    COPIED = "copied"
    DELETED = "deleted"
    MOVED = "moved"
    RENAMED = "renamed"
    REPLACED = "replaced"


class FileChangedEvent(BaseModel):
    """
    A file changed in storage.

    ``file`` is the file as reported by the storage (the new file for a copy).
    It carries its metadata as ``metadata`` or ``metadata_uid``; references and
    processed files point at their source through ``original_file``.
    """

    action: FileEventAction
    file: Dict[str, Any]


RecordEvent = Union[
    RecordCreatedEvent,
    RecordUpdatedEvent,
    RecordDeletedEvent,
    RecordMovedEvent,
    RecordPublishedEvent,
    FileChangedEvent,
]
