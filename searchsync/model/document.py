"""
Search document assembled from a single CMS record.
"""

from typing import Any, Dict, Optional


class Document:
    """
    Key/value bag of index fields.

    Setting a field to ``None`` removes it, so a document never carries
    null values to the search engine.
    """

    def __init__(self, indexer: Any, record: Dict[str, Any]):
        self._indexer = indexer
        self._record = record
        self._fields: Dict[str, Any] = {}

    @property
    def indexer(self) -> Any:
        return self._indexer

    @property
    def record(self) -> Dict[str, Any]:
        return self._record

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    def set_field(self, name: str, value: Any) -> "Document":
        if value is None:
            self._fields.pop(name, None)
        else:
            self._fields[name] = value
        return self

    def remove_field(self, name: str) -> "Document":
        self._fields.pop(name, None)
        return self

    def get_field(self, name: str, default: Optional[Any] = None) -> Any:
        return self._fields.get(name, default)

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def __repr__(self) -> str:
        return f"Document(fields={self._fields!r})"
