"""Direct upload handler: signed URL, PUT to storage, confirm."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from ..errors import UploadError, UploadUrlExpiredError, describe_exception
from ..models import (
    ResourceMetadata,
    StoredResource,
    UploadConfig,
    UploadPath,
    UploadResult,
    UploadSession,
    UploadState,
)
from ..protocols import IStorageUploader
from ..utils.events import FileProgress, invoke

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DirectUploadHandler:
    """
    Moves a file into blob storage without routing its bytes through the
    application server, then has the server register it.

    States: idle -> requesting-url -> uploading -> confirming -> complete,
    with failed reachable from every in-flight state. Confirm is only ever
    attempted after the PUT succeeded, so the server never records a
    resource whose blob was not written. A failure after the PUT may leave
    an orphan blob behind; it is reported in the result, not removed.
    """

    def __init__(
        self,
        repository,
        storage: IStorageUploader,
        config: Optional[UploadConfig] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize direct upload handler.

        Args:
            repository: ResourceRepository
            storage: StorageService
            config: UploadConfig
            clock: Returns the current aware datetime
        """
        self._repository = repository
        self._storage = storage
        self._config = config or UploadConfig()
        self._clock = clock or utc_now

    async def upload(
        self,
        path: Path,
        metadata: ResourceMetadata,
        mime_type: str,
        progress_callback=None,
        state_callback=None,
    ) -> UploadResult:
        """Run the three-step protocol for one file; never raises."""
        path = Path(path)
        try:
            file_size = path.stat().st_size
        except OSError as exc:
            logger.error("Cannot read %s: %s", path.name, exc)
            return UploadResult.fail(path.name, f"File not found: {path}", path=UploadPath.DIRECT)

        session = UploadSession(file_path=path, file_size=file_size, mime_type=mime_type)

        try:
            resource = await self._run(session, metadata, progress_callback, state_callback)
        except Exception as exc:
            failed_during = session.state
            session.fail()
            await self._notify(session, progress_callback, state_callback)
            error_msg = describe_exception(exc)
            logger.error(
                "Direct upload of %s failed during %s: %s",
                path.name,
                failed_during.value,
                error_msg,
                exc_info=not isinstance(exc, UploadError),
            )
            # A blob can only exist once the PUT has started
            orphan = None
            if failed_during in (UploadState.UPLOADING, UploadState.CONFIRMING):
                orphan = session.target_path
            if failed_during is UploadState.CONFIRMING:
                logger.warning("Blob %s left without a resource record", orphan)
            return UploadResult.fail(
                path.name,
                error_msg,
                path=UploadPath.DIRECT,
                file_path=orphan,
            )

        return UploadResult.ok(path.name, resource, path=UploadPath.DIRECT)

    async def _run(
        self,
        session: UploadSession,
        metadata: ResourceMetadata,
        progress_callback,
        state_callback,
    ) -> StoredResource:
        # 1. Ask the server for a pre-signed URL
        await self._enter(session, UploadState.REQUESTING_URL, progress_callback, state_callback)
        signed = await self._repository.request_upload_url(
            session.filename,
            session.file_size,
            session.mime_type,
            metadata.owner_scope,
        )
        session.upload_url = signed.upload_url
        session.target_path = signed.file_path
        session.expires_at = signed.expires_at

        remaining = session.expires_in(self._clock())
        if remaining < self._config.min_url_validity:
            logger.debug("Upload URL for %s expires in %.1fs", session.filename, remaining)
            raise UploadUrlExpiredError()

        # 2. PUT the bytes straight to storage
        await self._enter(session, UploadState.UPLOADING, progress_callback, state_callback)

        async def on_bytes(sent: int, total: int) -> None:
            before = session.percent
            if session.update_progress(sent, total) != before:
                await self._notify(session, progress_callback)

        await self._storage.put_file(
            session.upload_url,
            session.file_path,
            session.mime_type,
            on_bytes,
        )
        session.mark_transferred()
        await self._notify(session, progress_callback)

        # 3. Let the server verify the blob and create the record
        await self._enter(session, UploadState.CONFIRMING, progress_callback, state_callback)
        resource = await self._repository.confirm_upload(
            session.target_path,
            metadata,
            session.filename,
            session.file_size,
        )
        await self._enter(session, UploadState.COMPLETE, progress_callback, state_callback)
        logger.debug("Resource %s created for %s", resource.id, session.target_path)
        return resource

    async def _enter(self, session: UploadSession, state: UploadState, progress_callback, state_callback):
        session.transition(state)
        logger.debug("%s: %s", session.filename, state.value)
        await self._notify(session, progress_callback, state_callback)

    @staticmethod
    async def _notify(session: UploadSession, progress_callback, state_callback=None) -> None:
        await invoke(state_callback, session.state)
        await invoke(progress_callback, FileProgress(
            filename=session.filename,
            file_path=session.file_path,
            bytes_uploaded=session.bytes_sent,
            total_bytes=session.file_size,
            percent=session.percent,
            status=session.state.value,
        ))
