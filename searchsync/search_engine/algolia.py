"""
Algolia search engine client on top of the Algolia REST API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from ..exceptions import MissingConfigurationException, SearchEngineException
from ..model.document import Document
from .base import AbstractSearchEngine, SharedSession, raise_for_status
from .document_id import DocumentIdListener

logger = logging.getLogger(__name__)


class AlgoliaSearchEngine(AbstractSearchEngine):
    """
    Async Algolia client.

    Writes are acknowledged by Algolia before they are applied, so
    ``index_commit`` has nothing to flush.
    """

    engine = "algolia"

    def __init__(
        self,
        app_id: Optional[str],
        api_key: Optional[str],
        namespace: str,
        timeout: int = 30,
        document_id_listeners: Optional[List[DocumentIdListener]] = None,
        base_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        if not app_id or not api_key:
            raise MissingConfigurationException("Missing Algolia app ID or API key.")

        super().__init__(namespace, document_id_listeners)
        self.app_id = app_id
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = (base_url or f"https://{app_id}.algolia.net").rstrip("/")
        self._session = SharedSession(session)
        self._open_index: Optional[str] = None

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._session.session

    def _create_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "X-Algolia-Application-Id": self.app_id,
            "X-Algolia-API-Key": self.api_key,
            "Content-Type": "application/json",
        }
        return aiohttp.ClientSession(timeout=timeout, headers=headers)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        return self._session.get(self._create_session)

    async def close(self):
        """Close the HTTP session."""
        await self._session.close()

    def _index_url(self, index_name: str, suffix: str = "") -> str:
        return f"{self.base_url}/1/indexes/{quote(index_name, safe='')}{suffix}"

    def _require_open_index(self) -> str:
        if self._open_index is None:
            raise RuntimeError("No Algolia index opened, call index_open() first.")
        return self._open_index

    async def _request(
        self, method: str, url: str, operation: str, payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        session = await self._get_session()
        try:
            async with session.request(method, url, json=payload) as response:
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
        return True

    async def index_exists(self, index_name: str) -> bool:
        session = await self._get_session()
        try:
            async with session.request("GET", self._index_url(index_name, "/settings")) as response:
                if response.status == 404:
                    return False
                raise_for_status(response.status, await response.text(), "index_exists")
                return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SearchEngineException(f"index_exists failed: {e}")

    async def index_delete(self, index_name: str) -> bool:
        await self._request("DELETE", self._index_url(index_name), "index_delete")
        logger.info(f"Deleted Algolia index {index_name}")
        return True

    async def index_clear(self, index_name: str) -> bool:
        await self._request("POST", self._index_url(index_name, "/clear"), "index_clear")
        logger.info(f"Cleared Algolia index {index_name}")
        return True

    async def index_move(self, source: str, destination: str) -> bool:
        payload = {"operation": "move", "destination": destination}
        await self._request("POST", self._index_url(source, "/operation"), "index_move", payload)
        logger.info(f"Moved Algolia index {source} to {destination}")
        return True

    async def index_list(self) -> List[Dict[str, Any]]:
        result = await self._request("GET", f"{self.base_url}/1/indexes", "index_list")
        return result.get("items", [])

    async def document_add(self, document: Document) -> bool:
        index_name = self._require_open_index()
        object_id = self.document_id_of(document)

        payload = document.fields
        payload["objectID"] = object_id

        url = self._index_url(index_name, f"/{quote(object_id, safe='')}")
        await self._request("PUT", url, "document_add", payload)
        logger.debug(f"Saved {object_id} to Algolia index {index_name}")
        return True

    async def document_update(self, document: Document) -> bool:
        # saveObject replaces the whole object
        return await self.document_add(document)

    async def document_delete(self, document_id: str) -> bool:
        index_name = self._require_open_index()
        url = self._index_url(index_name, f"/{quote(document_id, safe='')}")
        await self._request("DELETE", url, "document_delete")
        return True
