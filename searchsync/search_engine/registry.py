"""
Search engine registry and factory.

The registry maps engine identifiers to factories and is built once at
startup; the factory resolves SearchEngine configuration to clients.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..config.settings import SyncSettings
from ..schema.models import SearchEngine
from .algolia import AlgoliaSearchEngine
from .base import AbstractSearchEngine
from .document_id import DocumentIdListener
from .opensearch import OpenSearchSearchEngine

logger = logging.getLogger(__name__)

SearchEngineFactoryFunc = Callable[[], AbstractSearchEngine]


@dataclass
class SearchEngineRegistration:
    engine: str
    title: str
    factory: SearchEngineFactoryFunc


class SearchEngineRegistry:
    def __init__(self):
        self._registrations: Dict[str, SearchEngineRegistration] = {}

    def register(self, engine: str, factory: SearchEngineFactoryFunc, title: str = "") -> "SearchEngineRegistry":
        self._registrations[engine] = SearchEngineRegistration(engine=engine, title=title or engine, factory=factory)
        return self

    def get(self, engine: str) -> Optional[SearchEngineRegistration]:
        return self._registrations.get(engine)

    def engines(self) -> List[SearchEngineRegistration]:
        return list(self._registrations.values())


class SearchEngineFactory:
    """Creates one client per engine and hands out copies bound to an index."""

    def __init__(self, registry: SearchEngineRegistry):
        self.registry = registry
        self._instances: Dict[str, AbstractSearchEngine] = {}

    def make_instance_by_search_engine_model(
        self, search_engine: Optional[SearchEngine]
    ) -> Optional[AbstractSearchEngine]:
        """
        Resolve the client for a search engine configuration.

        Args:
            search_engine: Configuration of the target engine and index

        Returns:
            Client bound to the configured index, or None for a missing or unknown engine

        Raises:
            MissingConfigurationException: If the engine lacks credentials
        """
        if search_engine is None:
            return None

        instance = self._instances.get(search_engine.engine)
        if instance is None:
            registration = self.registry.get(search_engine.engine)
            if registration is None:
                logger.warning(f"No search engine registered for '{search_engine.engine}'")
                return None
            instance = registration.factory()
            self._instances[search_engine.engine] = instance

        return instance.with_index_name(search_engine.index_name)

    async def close(self) -> None:
        for instance in self._instances.values():
            await instance.close()
        self._instances.clear()


def build_default_search_engine_registry(
    settings: SyncSettings, document_id_listeners: Optional[List[DocumentIdListener]] = None
) -> SearchEngineRegistry:
    """Register the bundled Algolia and OpenSearch clients."""
    registry = SearchEngineRegistry()
    registry.register(
        "algolia",
        lambda: AlgoliaSearchEngine(
            app_id=settings.algolia_app_id,
            api_key=settings.algolia_api_key,
            namespace=settings.document_id_namespace,
            timeout=settings.algolia_timeout,
            document_id_listeners=document_id_listeners,
        ),
        title="Algolia",
    )
    registry.register(
        "opensearch",
        lambda: OpenSearchSearchEngine(
            endpoint=settings.opensearch_endpoint,
            namespace=settings.document_id_namespace,
            username=settings.opensearch_username,
            password=settings.opensearch_password,
            use_ssl=settings.opensearch_use_ssl,
            verify_certs=settings.opensearch_verify_certs,
            timeout=settings.opensearch_timeout,
            document_id_listeners=document_id_listeners,
        ),
        title="OpenSearch",
    )
    return registry
