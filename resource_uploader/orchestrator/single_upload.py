"""Single file upload: pre-flight checks and path selection."""
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from ..errors import EmptyFileError, FileTooLargeError, UploadError
from ..models import ResourceMetadata, UploadConfig, UploadResult
from .direct_upload import DirectUploadHandler
from .small_upload import SmallUploadHandler

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(Path(path).name)
    return mime_type or DEFAULT_MIME_TYPE


class SingleUploadHandler:
    """Validates a file and routes it to the small or direct upload path."""

    def __init__(
        self,
        small_handler: SmallUploadHandler,
        direct_handler: DirectUploadHandler,
        config: Optional[UploadConfig] = None,
    ):
        """
        Initialize single upload handler.

        Args:
            small_handler: SmallUploadHandler
            direct_handler: DirectUploadHandler
            config: UploadConfig
        """
        self._small = small_handler
        self._direct = direct_handler
        self._config = config or UploadConfig()

    def preflight(self, path: Path) -> int:
        """
        Check a file before any network call and return its size.

        Raises:
            UploadError: missing or not a regular file
            EmptyFileError: zero bytes
            FileTooLargeError: above the absolute ceiling
        """
        path = Path(path)
        if not path.is_file():
            raise UploadError(f"File not found: {path}")
        size = path.stat().st_size
        if size == 0:
            raise EmptyFileError()
        if size > self._config.max_file_size:
            raise FileTooLargeError()
        return size

    async def upload(
        self,
        path: Path,
        metadata: ResourceMetadata,
        progress_callback=None,
        state_callback=None,
    ) -> UploadResult:
        """Upload one file with its metadata; never raises for upload failures."""
        path = Path(path)

        try:
            size = self.preflight(path)
        except UploadError as exc:
            logger.error("Rejected %s before upload: %s", path.name, exc.user_message)
            return UploadResult.fail(path.name, exc.user_message)

        mime_type = guess_mime_type(path)

        if self._config.use_direct_upload(size):
            logger.debug(
                "Using direct upload for %s (%.2f MB, threshold %.0f MB)",
                path.name,
                size / 1024 / 1024,
                self._config.direct_upload_threshold / 1024 / 1024,
            )
            return await self._direct.upload(
                path, metadata, mime_type, progress_callback, state_callback
            )

        logger.debug("Using single-call upload for %s (%.2f MB)", path.name, size / 1024 / 1024)
        return await self._small.upload(path, metadata, mime_type, progress_callback)

