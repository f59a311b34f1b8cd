"""
Indexer registry and factory.

The registry is an explicit mapping from record type to a factory, built
once at startup and handed to the IndexerFactory.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..config.settings import SyncSettings
from ..constants import CONTENT_TABLE, FILE_METADATA_TABLE, NEWS_TABLE, PAGES_TABLE
from ..queue.repository import QueueItemRepository
from ..repository.interfaces import FileRepository, RecordRepository, SiteResolver
from ..schema.models import IndexingService
from ..search_engine.registry import SearchEngineFactory
from .base import AbstractIndexer
from .content_indexer import ContentIndexer
from .document_builder import DocumentListener
from .enrichers import content_document_enricher, page_document_enricher
from .file_indexer import FileIndexer
from .news_indexer import NewsIndexer
from .page_indexer import PageIndexer

logger = logging.getLogger(__name__)

IndexerFactoryFunc = Callable[[], AbstractIndexer]


@dataclass
class IndexerRegistration:
    type: str
    title: str
    factory: IndexerFactoryFunc
    icon: str = ""


class IndexerRegistry:
    def __init__(self):
        self._registrations: Dict[str, IndexerRegistration] = {}

    def register(
        self, type: str, factory: IndexerFactoryFunc, title: str = "", icon: str = ""
    ) -> "IndexerRegistry":
        self._registrations[type] = IndexerRegistration(type=type, title=title or type, factory=factory, icon=icon)
        return self

    def get(self, type: str) -> Optional[IndexerRegistration]:
        return self._registrations.get(type)

    def types(self) -> List[str]:
        return list(self._registrations)

    def registrations(self) -> List[IndexerRegistration]:
        return list(self._registrations.values())


class IndexerFactory:
    """Creates one shared, unbound indexer per type."""

    def __init__(self, registry: IndexerRegistry):
        self.registry = registry
        self._instances: Dict[str, AbstractIndexer] = {}

    def make_instance_by_type(self, type: str) -> Optional[AbstractIndexer]:
        instance = self._instances.get(type)
        if instance is not None:
            return instance

        registration = self.registry.get(type)
        if registration is None:
            logger.debug(f"No indexer registered for type '{type}'")
            return None

        instance = registration.factory()
        self._instances[type] = instance
        return instance

    def indexers(self) -> List[IndexerRegistration]:
        return self.registry.registrations()

    def make_instance_by_indexing_service(self, indexing_service: IndexingService) -> Optional[AbstractIndexer]:
        indexer = self.make_instance_by_type(indexing_service.type)
        if indexer is None:
            return None
        return indexer.with_indexing_service(indexing_service)


def build_default_indexer_registry(
    settings: SyncSettings,
    record_repository: RecordRepository,
    queue_repository: QueueItemRepository,
    search_engine_factory: SearchEngineFactory,
    file_repository: FileRepository,
    site_resolver: Optional[SiteResolver] = None,
    document_listeners: Optional[List[DocumentListener]] = None,
) -> IndexerRegistry:
    """
    Register the bundled page, content, news and file indexers.

    Args:
        site_resolver: Enables the site and URL fields of page and content documents
        document_listeners: Additional listeners run after the bundled ones
    """
    listeners: List[DocumentListener] = []
    if site_resolver is not None:
        listeners.extend([page_document_enricher(site_resolver), content_document_enricher(site_resolver)])
    listeners.extend(document_listeners or [])

    common = (settings, record_repository, queue_repository, search_engine_factory)

    registry = IndexerRegistry()
    registry.register(PAGES_TABLE, lambda: PageIndexer(*common, listeners), title="Pages", icon="apps-pagetree-page")
    registry.register(
        CONTENT_TABLE, lambda: ContentIndexer(*common, listeners), title="Content elements", icon="content-text"
    )
    registry.register(NEWS_TABLE, lambda: NewsIndexer(*common, listeners), title="News", icon="content-news")
    registry.register(
        FILE_METADATA_TABLE,
        lambda: FileIndexer(*common, file_repository, listeners),
        title="Files",
        icon="mimetypes-other-other",
    )
    return registry
