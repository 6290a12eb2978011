"""Single-call upload for files small enough to pass through the server."""
from __future__ import annotations

import logging
from pathlib import Path

from ..errors import UploadError, describe_exception
from ..models import ResourceMetadata, UploadPath, UploadResult
from ..utils.events import FileProgress, invoke

logger = logging.getLogger(__name__)


class SmallUploadHandler:
    """Sends file bytes and metadata to the application server in one request."""

    def __init__(self, repository):
        self._repository = repository

    async def upload(
        self,
        path: Path,
        metadata: ResourceMetadata,
        mime_type: str,
        progress_callback=None,
    ) -> UploadResult:
        path = Path(path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            logger.error("Cannot read %s: %s", path.name, exc)
            return UploadResult.fail(path.name, f"File not found: {path}", path=UploadPath.SINGLE)

        progress = FileProgress(
            filename=path.name,
            file_path=path,
            total_bytes=size,
            status="uploading",
        )
        await invoke(progress_callback, progress)

        try:
            resource = await self._repository.upload_small(path, metadata, mime_type)
        except Exception as exc:
            error_msg = describe_exception(exc)
            logger.error(
                "Upload of %s failed: %s",
                path.name,
                error_msg,
                exc_info=not isinstance(exc, UploadError),
            )
            progress.status = "failed"
            await invoke(progress_callback, progress)
            return UploadResult.fail(path.name, error_msg, path=UploadPath.SINGLE)

        progress.bytes_uploaded = size
        progress.percent = 100
        progress.status = "complete"
        await invoke(progress_callback, progress)
        return UploadResult.ok(path.name, resource, path=UploadPath.SINGLE)
