"""
OpenSearch search engine client.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import aiohttp

from ..exceptions import MissingConfigurationException, SearchEngineException
from ..model.document import Document
from .base import AbstractSearchEngine, SharedSession, raise_for_status
from .document_id import DocumentIdListener

logger = logging.getLogger(__name__)


class OpenSearchSearchEngine(AbstractSearchEngine):
    """
    Async OpenSearch client for document indexing and index administration.
    """

    engine = "opensearch"

    def __init__(
        self,
        endpoint: Optional[str],
        namespace: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: bool = True,
        verify_certs: bool = True,
        timeout: int = 30,
        document_id_listeners: Optional[List[DocumentIdListener]] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        if not endpoint:
            raise MissingConfigurationException("Missing OpenSearch endpoint.")

        super().__init__(namespace, document_id_listeners)
        self.base_url = endpoint.rstrip("/") + "/"
        self.use_ssl = use_ssl
        self.verify_certs = verify_certs
        self.timeout = timeout
        self._session = SharedSession(session)
        self._open_index: Optional[str] = None

        # Prepare auth
        self.auth = None
        if username and password:
            self.auth = aiohttp.BasicAuth(username, password)

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._session.session

    def _create_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        connector = aiohttp.TCPConnector(ssl=self.verify_certs if self.use_ssl else False)
        return aiohttp.ClientSession(timeout=timeout, connector=connector, auth=self.auth)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        return self._session.get(self._create_session)

    async def close(self):
        """Close the HTTP session."""
        await self._session.close()

    def _url(self, path: str) -> str:
        return urljoin(self.base_url, path)

    def _require_open_index(self) -> str:
        if self._open_index is None:
            raise RuntimeError("No OpenSearch index opened, call index_open() first.")
        return self._open_index

    async def _request(
        self, method: str, path: str, operation: str, payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        session = await self._get_session()
        try:
            async with session.request(method, self._url(path), json=payload) as response:
                body = await response.text()
                raise_for_status(response.status, body, operation)
                if not body:
                    return {}
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SearchEngineException(f"{operation} failed: {e}")

    async def index_open(self, index_name: str) -> None:
        self._open_index = index_name

    async def index_close(self) -> None:
        self._open_index = None

    async def index_commit(self) -> bool:
        index_name = self._require_open_index()
        await self._request("POST", f"{quote(index_name, safe='')}/_refresh", "index_commit")
        return True

    async def index_exists(self, index_name: str) -> bool:
        session = await self._get_session()
        try:
            async with session.request("HEAD", self._url(quote(index_name, safe=""))) as response:
                if response.status == 404:
                    return False
                raise_for_status(response.status, "", "index_exists")
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SearchEngineException(f"index_exists failed: {e}")

    async def index_delete(self, index_name: str) -> bool:
        await self._request("DELETE", quote(index_name, safe=""), "index_delete")
        logger.info(f"Deleted OpenSearch index {index_name}")
        return True

    async def index_clear(self, index_name: str) -> bool:
        payload = {"query": {"match_all": {}}}
        await self._request("POST", f"{quote(index_name, safe='')}/_delete_by_query", "index_clear", payload)
        logger.info(f"Cleared OpenSearch index {index_name}")
        return True

    async def index_move(self, source: str, destination: str) -> bool:
        payload = {"source": {"index": source}, "dest": {"index": destination}}
        await self._request("POST", "_reindex?refresh=true", "index_move", payload)
        await self.index_delete(source)
        return True

    async def index_list(self) -> List[Dict[str, Any]]:
        result = await self._request("GET", "_cat/indices?format=json", "index_list")
        return result if isinstance(result, list) else []

    async def document_add(self, document: Document) -> bool:
        index_name = self._require_open_index()
        document_id = self.document_id_of(document)
        path = f"{quote(index_name, safe='')}/_doc/{quote(document_id, safe='')}"
        await self._request("PUT", path, "document_add", document.fields)
        logger.debug(f"Indexed {document_id} into {index_name}")
        return True

    async def document_update(self, document: Document) -> bool:
        return await self.document_add(document)

    async def document_delete(self, document_id: str) -> bool:
        index_name = self._require_open_index()
        path = f"{quote(index_name, safe='')}/_doc/{quote(document_id, safe='')}"
        try:
            await self._request("DELETE", path, "document_delete")
        except SearchEngineException as e:
            # Already gone
            if e.status_code == 404:
                return True
            raise
        return True
