"""
Turns storage level file changes into record changes of their metadata.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..constants import FILE_METADATA_TABLE
from ..schema.events import FileChangedEvent, FileEventAction, RecordDeletedEvent, RecordEvent, RecordUpdatedEvent

logger = logging.getLogger(__name__)


def get_metadata_from_file(file: Dict[str, Any]) -> Dict[str, Any]:
    """Metadata of a file; references and processed files use their original."""
    original_file = file.get("original_file")
    if original_file:
        return get_metadata_from_file(original_file)

    metadata = file.get("metadata")
    if metadata:
        return dict(metadata)
    if file.get("metadata_uid"):
        return {"uid": file["metadata_uid"]}
    return {}


def get_metadata_uid(file: Dict[str, Any]) -> Optional[int]:
    uid = int(get_metadata_from_file(file).get("uid") or 0)
    return uid if uid > 0 else None


class FileChangeListener:
    """Dispatches an update or delete of the metadata record of a changed file."""

    def __init__(self, dispatch: Callable[[RecordEvent], Awaitable[None]]):
        self.dispatch = dispatch

    async def __call__(self, event: FileChangedEvent) -> None:
        if event.action == FileEventAction.DELETED and int(event.file.get("deleted") or 0):
            # File already marked deleted
            return

        metadata_uid = get_metadata_uid(event.file)
        if metadata_uid is None:
            logger.debug(f"Ignoring {event.action.value} file {event.file.get('uid')} without metadata")
            return

        if event.action == FileEventAction.DELETED:
            await self.dispatch(RecordDeletedEvent(table=FILE_METADATA_TABLE, uid=metadata_uid))
        else:
            await self.dispatch(RecordUpdatedEvent(table=FILE_METADATA_TABLE, uid=metadata_uid))
