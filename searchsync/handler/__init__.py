"""
Record change handling.
"""

from .file_handler import FileChangeListener, get_metadata_uid
from .listeners import RecordDeleteListener, RecordEventDispatcher, RecordMoveListener, RecordUpdateListener
from .record_handler import RecordHandler

__all__ = [
    "FileChangeListener",
    "RecordDeleteListener",
    "RecordEventDispatcher",
    "RecordHandler",
    "RecordMoveListener",
    "RecordUpdateListener",
    "get_metadata_uid",
]
