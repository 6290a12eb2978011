"""Queued upload of several files as independent tasks."""
import asyncio
import logging
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import describe_exception
from ..models import UploadConfig, UploadResult
from ..utils.events import EventEmitter, FileProgress
from .file_collector import FileCollector
from .models import QueueItem, QueueUploadResult
from .single_upload import SingleUploadHandler

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """State of a queue process."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class QueueUploadProcess:
    """
    Process object for queued uploads with event-based progress tracking.

    Every file runs as its own task with its own upload session; one file
    failing never affects the others. The only shared data is each item's
    place in the queue, reported through FileProgress.position.

    Usage:
        process = orchestrator.upload_queue(items)
        process.on_file_progress(lambda path, p: print(f"{p.filename}: {p.percent}%"))
        process.on_finish(lambda result: print(f"{result.uploaded_files} uploaded"))
        result = await process.wait()
    """

    def __init__(
        self,
        handler: SingleUploadHandler,
        items: List[QueueItem],
        config: Optional[UploadConfig] = None,
    ):
        self._handler = handler
        self._items = list(items)
        self._config = config or UploadConfig()
        self._events = EventEmitter()
        self._state = ProcessState.PENDING
        self._task: Optional[asyncio.Task] = None
        self._result: Optional[QueueUploadResult] = None

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def result(self) -> Optional[QueueUploadResult]:
        return self._result

    # Event subscription methods
    def on_file_start(self, callback: Callable[[Path], None]):
        """Called when a file starts uploading. Receives file_path."""
        self._events.on("file_start", callback)

    def on_file_progress(self, callback: Callable[[Path, FileProgress], None]):
        """Called on progress or state changes. Receives file_path and FileProgress."""
        self._events.on("file_progress", callback)

    def on_file_complete(self, callback: Callable[[UploadResult], None]):
        """Called when a file completes successfully. Receives UploadResult."""
        self._events.on("file_complete", callback)

    def on_file_fail(self, callback: Callable[[UploadResult], None]):
        """Called when a file fails or is rejected. Receives UploadResult."""
        self._events.on("file_fail", callback)

    def on_finish(self, callback: Callable[[QueueUploadResult], None]):
        """Called once every file has finished. Receives QueueUploadResult."""
        self._events.on("finish", callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called when the process itself breaks. Receives Exception."""
        self._events.on("error", callback)

    # Control methods
    async def start(self):
        """Start the upload process (non-blocking)."""
        if self._state != ProcessState.PENDING:
            raise RuntimeError(f"Cannot start process in state: {self._state}")
        self._state = ProcessState.RUNNING
        self._task = asyncio.create_task(self._run())

    async def wait(self) -> QueueUploadResult:
        """Wait for the upload process to complete and return result."""
        if self._state == ProcessState.PENDING:
            await self.start()
        if self._task:
            await self._task
        assert self._result is not None
        return self._result

    async def _run(self):
        try:
            accepted, rejected = FileCollector(self._config).select(self._items)
            for result in rejected:
                await self._events.emit("file_fail", result)

            semaphore = asyncio.Semaphore(max(1, self._config.max_concurrent_uploads))
            queue_size = len(accepted)
            uploaded = await asyncio.gather(*(
                self._upload_item(item, position, queue_size, semaphore)
                for position, item in enumerate(accepted, start=1)
            ))

            # Rejected files first, then uploads in queue order
            self._result = QueueUploadResult.from_results(rejected + list(uploaded))
            self._state = ProcessState.COMPLETED
            logger.info(
                "Queue finished: %d/%d uploaded, %d failed",
                self._result.uploaded_files,
                self._result.total_files,
                self._result.failed_files,
            )
            await self._events.emit("finish", self._result)
        except Exception as exc:
            logger.error("Queue upload process failed: %s", exc, exc_info=True)
            self._state = ProcessState.FAILED
            self._result = QueueUploadResult.from_results([
                UploadResult.fail(Path(item.path).name, describe_exception(exc))
                for item in self._items
            ])
            await self._events.emit("error", exc)
            await self._events.emit("finish", self._result)

    async def _upload_item(
        self,
        item: QueueItem,
        position: int,
        queue_size: int,
        semaphore: asyncio.Semaphore,
    ) -> UploadResult:
        path = Path(item.path)

        async def on_progress(progress: FileProgress) -> None:
            await self._events.emit(
                "file_progress",
                path,
                replace(progress, position=position, queue_size=queue_size),
            )

        async with semaphore:
            await self._events.emit("file_start", path)
            result = await self._handler.upload(path, item.metadata, on_progress)

        await self._events.emit("file_complete" if result.success else "file_fail", result)
        return result


class QueueUploadHandler:
    """Creates queue processes bound to one single-file handler."""

    def __init__(self, single_handler: SingleUploadHandler, config: Optional[UploadConfig] = None):
        self._single = single_handler
        self._config = config or UploadConfig()

    def upload_queue(self, items: List[QueueItem]) -> QueueUploadProcess:
        return QueueUploadProcess(self._single, items, self._config)

