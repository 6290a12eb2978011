"""
Storage Service - Single Responsibility: move file bytes to blob storage.

Streams a file straight to a pre-signed URL, bypassing the application
server. The whole transfer is bounded by a fixed timeout.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Optional

import httpx

from ..errors import NetworkError, StorageUploadError, UploadTimeoutError
from ..models import UploadConfig
from ..protocols import ProgressCallback
from ..utils.events import invoke

logger = logging.getLogger(__name__)


class StorageService:
    """
    Direct-to-storage uploader.

    Implements IStorageUploader protocol.
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize storage service.

        Args:
            config: Upload configuration (timeout, chunk size, API key)
            transport: Optional httpx transport, used by tests
        """
        self._config = config or UploadConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.transfer_timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self, content_type: str, size: int) -> dict:
        headers = {
            "Content-Type": content_type,
            "Content-Length": str(size),
        }
        # Storage gateway routes on the API key even for signed URLs
        api_key = self._config.storage_api_key
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def _iter_file(
        self,
        path: Path,
        total: int,
        progress_callback: Optional[ProgressCallback],
    ) -> AsyncIterator[bytes]:
        sent = 0
        with open(path, "rb") as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, self._config.chunk_size)
                if not chunk:
                    break
                yield chunk
                # Counted once the transport has taken the chunk
                sent += len(chunk)
                await invoke(progress_callback, sent, total)

    async def put_file(
        self,
        upload_url: str,
        path: Path,
        content_type: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """
        PUT a file's raw bytes to a pre-signed URL.

        Raises:
            UploadTimeoutError: transfer exceeded the configured bound
            NetworkError: connection failed or dropped mid-transfer
            StorageUploadError: storage answered with a non-2xx status
        """
        if not self._client:
            raise RuntimeError("StorageService not initialized. Use 'async with' context.")

        path = Path(path)
        total = path.stat().st_size
        logger.debug("PUT %s (%d bytes) to storage", path.name, total)

        try:
            response = await asyncio.wait_for(
                self._client.put(
                    upload_url,
                    content=self._iter_file(path, total, progress_callback),
                    headers=self._headers(content_type, total),
                ),
                timeout=self._config.transfer_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.error("Upload of %s timed out", path.name)
            raise UploadTimeoutError() from exc
        except httpx.TransportError as exc:
            logger.error("Network error during upload of %s: %s", path.name, exc)
            raise NetworkError() from exc

        if not 200 <= response.status_code < 300:
            detail = response.text
            logger.error(
                "Storage rejected %s with status %d: %s",
                path.name,
                response.status_code,
                detail,
            )
            raise StorageUploadError(response.status_code, detail)

        logger.debug("PUT %s complete (status %d)", path.name, response.status_code)
