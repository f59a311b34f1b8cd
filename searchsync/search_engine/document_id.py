"""
Unique document id hook.

Listeners receive a CreateUniqueDocumentIdEvent and may set or replace its
``document_id``. The default listener produces ``{namespace}:{table}-{uid}``.
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional


@dataclass
class CreateUniqueDocumentIdEvent:
    search_engine: Any
    table_name: str
    record_uid: int
    document_id: Optional[str] = None


DocumentIdListener = Callable[[CreateUniqueDocumentIdEvent], None]


def default_document_id_listener(namespace: str) -> DocumentIdListener:
    def _listener(event: CreateUniqueDocumentIdEvent) -> None:
        if event.document_id is None:
            event.document_id = f"{namespace}:{event.table_name}-{event.record_uid}"

    return _listener


def create_unique_document_id(
    search_engine: Any, table_name: str, record_uid: int, listeners: List[DocumentIdListener]
) -> str:
    event = CreateUniqueDocumentIdEvent(search_engine=search_engine, table_name=table_name, record_uid=record_uid)
    for listener in listeners:
        listener(event)

    if not event.document_id:
        raise ValueError(f"No document id created for {table_name}:{record_uid}")
    return event.document_id
