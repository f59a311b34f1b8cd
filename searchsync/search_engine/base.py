"""
Search engine client contract shared by every backend.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from ..exceptions import RateLimitException, SearchEngineException
from ..model.document import Document
from .document_id import DocumentIdListener, create_unique_document_id, default_document_id_listener

logger = logging.getLogger(__name__)


def raise_for_status(status: int, body: str, operation: str) -> None:
    """
    Classify an HTTP response of a search engine API.

    Raises:
        RateLimitException: On HTTP 429
        SearchEngineException: On any other non-2xx status
    """
    if 200 <= status < 300:
        return
    if status == 429:
        raise RateLimitException(f"Rate limit hit during {operation}: {body}")
    raise SearchEngineException(f"{operation} failed: {status} - {body}", status_code=status)


class SharedSession:
    """HTTP session shared by a client and every copy bound to an index."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.session = session

    def get(self, create: Callable[[], aiohttp.ClientSession]) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = create()
        return self.session

    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()


class AbstractSearchEngine(ABC):
    """
    Base class of the search engine clients.

    ``with_index_name`` returns a copy bound to an index. HTTP clients keep
    their session in a ``SharedSession`` so copies reuse it and ``close`` on
    the original releases it.
    """

    engine: str = ""

    def __init__(self, namespace: str, document_id_listeners: Optional[List[DocumentIdListener]] = None):
        self.namespace = namespace
        self.index_name: Optional[str] = None
        self.document_id_listeners: List[DocumentIdListener] = [default_document_id_listener(namespace)]
        self.document_id_listeners.extend(document_id_listeners or [])

    def with_index_name(self, index_name: str) -> "AbstractSearchEngine":
        clone = copy.copy(self)
        clone.index_name = index_name
        return clone

    def create_unique_document_id(self, table_name: str, record_uid: int) -> str:
        return create_unique_document_id(self, table_name, record_uid, self.document_id_listeners)

    def document_id_of(self, document: Document) -> str:
        return self.create_unique_document_id(str(document.get_field("type")), int(document.get_field("uid")))

    @abstractmethod
    async def index_open(self, index_name: str) -> None:
        pass

    @abstractmethod
    async def index_close(self) -> None:
        pass

    @abstractmethod
    async def index_commit(self) -> bool:
        pass

    @abstractmethod
    async def index_exists(self, index_name: str) -> bool:
        pass

    @abstractmethod
    async def index_delete(self, index_name: str) -> bool:
        pass

    @abstractmethod
    async def index_clear(self, index_name: str) -> bool:
        pass

    @abstractmethod
    async def index_move(self, source: str, destination: str) -> bool:
        pass

    @abstractmethod
    async def index_list(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def document_add(self, document: Document) -> bool:
        pass

    @abstractmethod
    async def document_update(self, document: Document) -> bool:
        pass

    @abstractmethod
    async def document_delete(self, document_id: str) -> bool:
        pass

    async def delete_from_index(self, table_name: str, record_uid: int) -> bool:
        """
        Remove the document of a record from the bound index.

        Raises:
            RuntimeError: If no index name is bound
        """
        if self.index_name is None:
            raise RuntimeError("Missing index name, use with_index_name() first.")

        document_id = self.create_unique_document_id(table_name, record_uid)

        await self.index_open(self.index_name)
        try:
            result = await self.document_delete(document_id)
            await self.index_commit()
        finally:
            await self.index_close()

        logger.debug(f"Deleted {document_id} from index {self.index_name}: {result}")
        return result

    async def close(self) -> None:
        """Release network resources."""
        pass
