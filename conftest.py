"""Pytest configuration and shared fixtures."""

from typing import Any, Dict, List, Optional

import pytest

from searchsync.config.settings import IndexerTypeSettings, SyncSettings
from searchsync.handler.record_handler import RecordHandler
from searchsync.indexer.registry import IndexerFactory, build_default_indexer_registry
from searchsync.model.document import Document
from searchsync.queue.local_repository import LocalQueueItemRepository
from searchsync.repository.memory import (
    InMemoryFileRepository,
    InMemoryIndexingServiceRepository,
    InMemoryRecordRepository,
    InMemorySiteResolver,
)
from searchsync.schema.models import IndexingService, SearchEngine
from searchsync.search_engine.base import AbstractSearchEngine
from searchsync.search_engine.registry import SearchEngineFactory, SearchEngineRegistry


class RecordingSearchEngine(AbstractSearchEngine):
    """Search engine double recording every call.

    Copies made by ``with_index_name`` share the call log.
    """

    engine = "recording"

    def __init__(self, namespace: str = "svc"):
        super().__init__(namespace)
        self.calls: List[tuple] = []
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.fail_with: Optional[Exception] = None
        self.update_result = True

    def _raise_if_failing(self):
        if self.fail_with is not None:
            raise self.fail_with

    async def index_open(self, index_name: str) -> None:
        self.calls.append(("index_open", index_name))

    async def index_close(self) -> None:
        self.calls.append(("index_close",))

    async def index_commit(self) -> bool:
        self.calls.append(("index_commit",))
        return True

    async def index_exists(self, index_name: str) -> bool:
        return True

    async def index_delete(self, index_name: str) -> bool:
        return True

    async def index_clear(self, index_name: str) -> bool:
        return True

    async def index_move(self, source: str, destination: str) -> bool:
        return True

    async def index_list(self) -> List[Dict[str, Any]]:
        return []

    async def document_add(self, document: Document) -> bool:
        document_id = self.document_id_of(document)
        self.calls.append(("document_add", document_id))
        self._raise_if_failing()
        self.documents[document_id] = document.fields
        return self.update_result

    async def document_update(self, document: Document) -> bool:
        document_id = self.document_id_of(document)
        self.calls.append(("document_update", document_id))
        self._raise_if_failing()
        self.documents[document_id] = document.fields
        return self.update_result

    async def document_delete(self, document_id: str) -> bool:
        self.calls.append(("document_delete", document_id))
        self._raise_if_failing()
        self.documents.pop(document_id, None)
        return True

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


def make_service(uid: int, type: str, pid: int = 1, **kwargs: Any) -> IndexingService:
    """Indexing service writing to the recording engine."""
    kwargs.setdefault("search_engine", SearchEngine(engine="recording", index_name=f"idx_{type}"))
    return IndexingService(uid=uid, pid=pid, type=type, **kwargs)


@pytest.fixture
def settings(tmp_path):
    """Settings using a local queue file inside the test directory."""
    return SyncSettings(
        environment="dev",
        queue_backend="local",
        local_queue_file=tmp_path / "queue.json",
        status_file=tmp_path / "status.json",
        document_id_namespace="svc",
        json_logs=False,
        indexer={
            "pages": IndexerTypeSettings(fields={"title": "title", "abstract": "abstract"}),
            "tt_content": IndexerTypeSettings(fields={"header": "title", "bodytext": "content"}),
            "sys_file_metadata": IndexerTypeSettings(
                fields={"title": "title", "description": "description"}, extensions=["pdf", "docx"]
            ),
        },
        sites={1: "https://www.example.com/"},
    )


@pytest.fixture
def records():
    """A small site: root page 1 with a three level tree, plus a tree without site root."""
    return InMemoryRecordRepository(
        {
            "pages": [
                {"uid": 1, "pid": 0, "title": "Home", "is_siteroot": 1, "slug": "/", "tstamp": 10},
                {"uid": 2, "pid": 1, "title": "About", "slug": "/about", "tstamp": 20},
                {"uid": 3, "pid": 2, "title": "Team", "slug": "/about/team", "tstamp": 30},
                {"uid": 4, "pid": 3, "title": "People", "slug": "/about/team/people", "tstamp": 40},
                {"uid": 10, "pid": 0, "title": "Storage"},
                {"uid": 11, "pid": 10, "title": "Lost"},
            ],
            "tt_content": [
                {"uid": 100, "pid": 2, "CType": "text", "header": "Intro", "bodytext": "<p>Hello</p>", "sorting": 1},
                {"uid": 101, "pid": 2, "CType": "image", "header": "Photo", "sorting": 2},
                {"uid": 102, "pid": 3, "CType": "text", "header": "Members", "sorting": 1},
                {"uid": 110, "pid": 11, "CType": "text", "header": "Orphan"},
            ],
            "sys_file_metadata": [
                {"uid": 300, "pid": 0, "title": "Annual report", "tstamp": 50},
            ],
        }
    )


@pytest.fixture
def files():
    return InMemoryFileRepository(
        [
            {
                "uid": 30,
                "metadata_uid": 300,
                "indexed": 1,
                "extension": "pdf",
                "mime_type": "application/pdf",
                "name": "report.pdf",
                "size": 1024,
                "public_url": "/fileadmin/report.pdf",
                "tstamp": 50,
            }
        ],
        {7: [300]},
    )


@pytest.fixture
def site_resolver(records, settings):
    return InMemorySiteResolver(records, settings.sites)


@pytest.fixture
def services():
    return InMemoryIndexingServiceRepository(
        [
            make_service(1, "pages", pages_recursive=[1]),
            make_service(2, "tt_content"),
            make_service(3, "sys_file_metadata", file_collections=[7]),
        ]
    )


@pytest.fixture
def queue_repository(settings):
    return LocalQueueItemRepository(settings)


@pytest.fixture
def search_engine():
    return RecordingSearchEngine(namespace="svc")


@pytest.fixture
def search_engine_factory(search_engine):
    registry = SearchEngineRegistry()
    registry.register("recording", lambda: search_engine, title="Recording")
    return SearchEngineFactory(registry)


@pytest.fixture
def indexer_factory(settings, records, queue_repository, search_engine_factory, files, site_resolver):
    registry = build_default_indexer_registry(
        settings, records, queue_repository, search_engine_factory, files, site_resolver=site_resolver
    )
    return IndexerFactory(registry)


@pytest.fixture
def record_handler(search_engine_factory, indexer_factory, records, services):
    return RecordHandler(search_engine_factory, indexer_factory, records, services)
