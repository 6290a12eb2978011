"""HTTP adapter for application server calls."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import APIError

logger = logging.getLogger(__name__)


class HTTPAPIClient:
    """
    HTTP client adapter for API calls.

    Implements IAPIClient protocol. Requests are never retried: a failed
    call is terminal for the upload attempt that made it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")
        return self._client

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, endpoint: str) -> None:
        if response.status_code < 400:
            return
        try:
            error_detail = response.json()
        except ValueError:
            error_detail = response.text
        raise APIError(response.status_code, method, endpoint, error_detail)

    async def post(self, endpoint: str, json: Dict) -> httpx.Response:
        client = self._require_client()
        logger.debug("POST %s", endpoint)
        response = await client.post(endpoint, json=json)
        self._raise_for_status(response, "POST", endpoint)
        return response

    async def post_multipart(self, endpoint: str, data: Dict, files: Dict) -> httpx.Response:
        client = self._require_client()
        logger.debug("POST %s (multipart)", endpoint)
        response = await client.post(endpoint, data=data, files=files)
        self._raise_for_status(response, "POST", endpoint)
        return response
