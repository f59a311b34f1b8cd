"""
Search engine clients.
"""

from .algolia import AlgoliaSearchEngine
from .base import AbstractSearchEngine, raise_for_status
from .document_id import CreateUniqueDocumentIdEvent, create_unique_document_id, default_document_id_listener
from .opensearch import OpenSearchSearchEngine
from .registry import SearchEngineFactory, SearchEngineRegistry, build_default_search_engine_registry

__all__ = [
    "AbstractSearchEngine",
    "AlgoliaSearchEngine",
    "CreateUniqueDocumentIdEvent",
    "OpenSearchSearchEngine",
    "SearchEngineFactory",
    "SearchEngineRegistry",
    "build_default_search_engine_registry",
    "create_unique_document_id",
    "default_document_id_listener",
    "raise_for_status",
]
