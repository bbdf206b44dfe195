"""HTTP client for a GroundX-style search and document-detail API.

Usage::

    client = GroundXClient(api_key="...")
    raw    = await client.search("1234", "termination clause", limit=10)
    detail = await client.get_document(raw["results"][0]["documentId"])
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from grounded_rag.config import settings
from grounded_rag.errors import ConfigurationError
from grounded_rag.retrieval.base import DocumentDetailClientBase, SearchClientBase

logger = logging.getLogger(__name__)


class GroundXClient(SearchClientBase, DocumentDetailClientBase):
    """Implements both service interfaces over one HTTP API.

    Parameters
    ----------
    api_key:
        Sent as the ``X-API-Key`` header.
    base_url:
        API root, e.g. ``https://api.groundx.ai/api``.
    timeout:
        Per-request timeout in seconds.
    http_client:
        Optional pre-built :class:`httpx.AsyncClient` (tests pass one
        backed by :class:`httpx.MockTransport`).  When omitted, a client
        is opened per request.
    """

    def __init__(
        self,
        api_key: str = settings.search_api_key,
        *,
        base_url: str = settings.search_api_url,
        timeout: float = settings.backend_timeout,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("SEARCH_API_KEY is required for the search service")
        self._headers = {"X-API-Key": api_key, "Content-Type": "application/json"}
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http_client

    # -- SearchClientBase -----------------------------------------------------

    async def search(self, collection_id: str, query: str, *, limit: int = 10) -> dict[str, Any]:
        payload = {"query": query, "n": limit}
        data = await self._request("POST", f"/v1/search/{collection_id}", json=payload)
        search = data.get("search") or {}
        results = search.get("results") or []
        logger.info("Search of collection %s returned %d result(s)", collection_id, len(results))
        return {"results": results, "text": search.get("text") or ""}

    # -- DocumentDetailClientBase ---------------------------------------------

    async def get_document(self, document_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"/v1/ingest/document/{document_id}")
        return data.get("document") or data

    # -- internals ------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        if self._http is not None:
            response = await self._http.request(method, url, headers=self._headers, timeout=self.timeout, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, headers=self._headers, **kwargs)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("%s %s failed with %s: %.200s", method, path, exc.response.status_code, exc.response.text)
            raise
        return response.json()
