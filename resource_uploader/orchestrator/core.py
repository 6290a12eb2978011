"""Core orchestrator - coordinates all upload workflows."""
from pathlib import Path
from typing import Dict, List, Optional

import httpx

from ..models import ResourceMetadata, UploadConfig, UploadResult
from ..services.api_client import HTTPAPIClient
from ..services.repository import ResourceRepository
from ..services.storage import StorageService
from .direct_upload import Clock, DirectUploadHandler
from .models import QueueItem
from .queue_upload import QueueUploadHandler, QueueUploadProcess
from .single_upload import SingleUploadHandler
from .small_upload import SmallUploadHandler


class UploadOrchestrator:
    """
    Orchestrates resource uploads using injected services.

    Usage:
        async with UploadOrchestrator(api_url) as uploader:
            result = await uploader.upload(pdf_path, ResourceMetadata(
                title="Week 3 slides", module_id="mod-1", content_type="slides",
            ))

        # Several files at once
        async with UploadOrchestrator(api_url) as uploader:
            process = uploader.upload_queue([QueueItem(p, metadata) for p in paths])
            result = await process.wait()
    """

    def __init__(
        self,
        api_url: str,
        config: Optional[UploadConfig] = None,
        headers: Optional[Dict[str, str]] = None,
        api_transport: Optional[httpx.AsyncBaseTransport] = None,
        storage_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            api_url: Application server base URL
            config: Upload configuration
            headers: Extra headers for application server calls (auth)
            api_transport: Optional httpx transport for the API client
            storage_transport: Optional httpx transport for storage PUTs
            clock: Returns the current aware datetime
        """
        self._api_url = api_url
        self._config = config or UploadConfig()
        self._headers = headers
        self._api_transport = api_transport
        self._storage_transport = storage_transport
        self._clock = clock

        # Services (initialized in __aenter__)
        self._api_client: Optional[HTTPAPIClient] = None
        self._storage: Optional[StorageService] = None
        self._repository: Optional[ResourceRepository] = None

        # Handlers (initialized in __aenter__)
        self._single_handler: Optional[SingleUploadHandler] = None
        self._queue_handler: Optional[QueueUploadHandler] = None

    @property
    def config(self) -> UploadConfig:
        return self._config

    async def __aenter__(self):
        """Initialize services and handlers."""
        self._api_client = HTTPAPIClient(
            self._api_url,
            timeout=self._config.api_timeout,
            headers=self._headers,
            transport=self._api_transport,
        )
        await self._api_client.__aenter__()
        self._storage = StorageService(self._config, transport=self._storage_transport)
        await self._storage.__aenter__()

        self._repository = ResourceRepository(self._api_client, self._config)
        self._single_handler = SingleUploadHandler(
            SmallUploadHandler(self._repository),
            DirectUploadHandler(self._repository, self._storage, self._config, self._clock),
            self._config,
        )
        self._queue_handler = QueueUploadHandler(self._single_handler, self._config)
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._storage:
            await self._storage.__aexit__(*args)
        if self._api_client:
            await self._api_client.__aexit__(*args)

    async def upload(
        self,
        path: Path,
        metadata: ResourceMetadata,
        progress_callback=None,
        state_callback=None,
    ) -> UploadResult:
        """Upload one file, choosing the single-call or direct path by size."""
        assert self._single_handler is not None
        return await self._single_handler.upload(path, metadata, progress_callback, state_callback)

    def upload_queue(self, items: List[QueueItem]) -> QueueUploadProcess:
        """
        Upload several files as independent tasks.

        Returns a QueueUploadProcess; subscribe to its events, then
        `await process.wait()`.
        """
        assert self._queue_handler is not None
        return self._queue_handler.upload_queue(items)
