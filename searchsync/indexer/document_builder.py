"""
Document builder turning raw CMS records into search documents.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..config.settings import SyncSettings
from ..model.document import Document
from ..schema.models import IndexingService
from .content_extractor import clean_html

logger = logging.getLogger(__name__)

SCALAR_TYPES = (str, int, float, bool)


@dataclass
class AfterDocumentAssembledEvent:
    """Passed to every listener once the document fields are populated."""

    document: Document
    indexer: Any
    indexing_service: Optional[IndexingService]
    record: Dict[str, Any]


DocumentListener = Callable[[AfterDocumentAssembledEvent], None]


class DocumentBuilder:
    """
    Assembles a Document from a record, an indexer and the field mapping.

    Listeners registered on the builder run synchronously, exactly once per
    ``assemble()`` call, after all standard and mapped fields are set.
    """

    def __init__(self, settings: SyncSettings, listeners: Optional[List[DocumentListener]] = None):
        self.settings = settings
        self.listeners: List[DocumentListener] = list(listeners or [])
        self._indexer: Any = None
        self._record: Dict[str, Any] = {}
        self._indexing_service: Optional[IndexingService] = None
        self._extra_fields: Dict[str, Any] = {}
        self._document: Optional[Document] = None

    def add_listener(self, listener: DocumentListener) -> "DocumentBuilder":
        self.listeners.append(listener)
        return self

    def set_indexer(self, indexer: Any) -> "DocumentBuilder":
        self._indexer = indexer
        return self

    def set_record(self, record: Dict[str, Any]) -> "DocumentBuilder":
        self._record = record
        return self

    def set_indexing_service(self, indexing_service: Optional[IndexingService]) -> "DocumentBuilder":
        self._indexing_service = indexing_service
        return self

    def set_extra_fields(self, fields: Dict[str, Any]) -> "DocumentBuilder":
        """Type specific fields, applied after the mapped fields."""
        self._extra_fields = dict(fields)
        return self

    @property
    def document(self) -> Optional[Document]:
        return self._document

    def assemble(self) -> "DocumentBuilder":
        """
        Build the document for the configured indexer and record.

        Without an indexer this is a no-op and ``document`` stays ``None``.

        Returns:
            The builder itself
        """
        if self._indexer is None:
            logger.debug("No indexer bound, skipping document assembly")
            return self

        table = self._indexer.table
        record = self._record
        schema = self.settings.get_table_schema(table)

        document = Document(self._indexer, record)
        document.set_field("uid", record.get("uid"))
        document.set_field("pid", record.get("pid") or 0)
        document.set_field("type", table)
        document.set_field("indexed", int(time.time()))

        if schema.crdate and schema.crdate in record:
            document.set_field("created", record[schema.crdate])
        if schema.tstamp and schema.tstamp in record:
            document.set_field("changed", record[schema.tstamp])

        self._add_mapped_fields(document, table, record)

        for name, value in self._extra_fields.items():
            document.set_field(name, value)

        self._document = document

        event = AfterDocumentAssembledEvent(
            document=document,
            indexer=self._indexer,
            indexing_service=self._indexing_service,
            record=record,
        )
        for listener in self.listeners:
            listener(event)

        return self

    def _add_mapped_fields(self, document: Document, table: str, record: Dict[str, Any]) -> None:
        mapping = self.settings.get_indexer_settings(table).fields
        if not mapping:
            return

        for column, value in record.items():
            target = mapping.get(column)
            if not target:
                continue
            if not isinstance(value, SCALAR_TYPES):
                continue
            if str(value) == "":
                continue

            if isinstance(value, str):
                value = clean_html(value)
                if value == "":
                    continue

            document.set_field(target, value)

    def build(
        self,
        indexer: Any,
        record: Dict[str, Any],
        indexing_service: Optional[IndexingService] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
    ) -> Optional[Document]:
        """Convenience wrapper: configure, assemble and return the document."""
        self._document = None
        return (
            self.set_indexer(indexer)
            .set_record(record)
            .set_indexing_service(indexing_service)
            .set_extra_fields(extra_fields or {})
            .assemble()
            .document
        )
