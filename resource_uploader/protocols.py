"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces so handlers can be tested with mocks.
"""
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

ProgressCallback = Callable[[int, int], Any]


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for application server calls."""

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST JSON to the API."""
        ...

    async def post_multipart(self, endpoint: str, data: Dict, files: Dict) -> Any:
        """POST a multipart form to the API."""
        ...


@runtime_checkable
class IStorageUploader(Protocol):
    """Interface for direct-to-storage transfers."""

    async def put_file(
        self,
        upload_url: str,
        path: Path,
        content_type: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """PUT a file's raw bytes to a pre-signed URL."""
        ...
