"""
Models for resource_uploader module.

Results and configuration are immutable dataclasses; the upload session is
the one mutable object, owned by a single upload coroutine.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

MB = 1024 * 1024

FILE_TYPE_MAP = {
    "pdf": "pdf",
    "doc": "doc",
    "docx": "docx",
    "xls": "xls",
    "xlsx": "xlsx",
    "ppt": "ppt",
    "pptx": "pptx",
    "csv": "csv",
    "mp4": "mp4",
    "mov": "mp4",
    "avi": "mp4",
    "webm": "mp4",
}


def file_type_for(filename: str) -> str:
    """Map a filename extension to the backend's file_type column."""
    ext = Path(filename).suffix.lower().lstrip(".")
    return FILE_TYPE_MAP.get(ext, "other")


class UploadStatus(Enum):
    """Upload operation status."""
    SUCCESS = "success"
    FAILED = "failed"


class UploadPath(Enum):
    """Which route the file bytes took."""
    SINGLE = "single"  # through the application server
    DIRECT = "direct"  # pre-signed URL straight to storage


class UploadState(Enum):
    """States of the direct upload protocol."""
    IDLE = "idle"
    REQUESTING_URL = "requesting-url"
    UPLOADING = "uploading"
    CONFIRMING = "confirming"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS = {
    UploadState.IDLE: {UploadState.REQUESTING_URL},
    UploadState.REQUESTING_URL: {UploadState.UPLOADING, UploadState.FAILED},
    UploadState.UPLOADING: {UploadState.CONFIRMING, UploadState.FAILED},
    UploadState.CONFIRMING: {UploadState.COMPLETE, UploadState.FAILED},
    UploadState.COMPLETE: set(),
    UploadState.FAILED: set(),
}


@dataclass(frozen=True)
class ResourceMetadata:
    """Descriptive metadata sent alongside a file."""
    title: str
    module_id: str
    content_type: str = "document"  # slides | document
    owner_scope: str = "global"  # cohort id or "global"
    session_number: Optional[int] = None
    order_index: int = 0
    duration_seconds: Optional[int] = None
    file_type: Optional[str] = None

    def resolve_file_type(self, filename: str) -> str:
        return self.file_type or file_type_for(filename)


@dataclass(frozen=True)
class StoredResource:
    """Durable resource record as returned by the backend."""
    id: str
    title: str
    file_path: Optional[str] = None
    content_type: Optional[str] = None
    file_size: Optional[int] = None
    module_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "StoredResource":
        """Build from a JSON record; accepts snake_case or camelCase keys."""
        def pick(*keys):
            for key in keys:
                if data.get(key) is not None:
                    return data[key]
            return None

        if not isinstance(data, dict) or pick("id") is None:
            raise ValueError(f"Malformed resource record: {data!r}")

        return cls(
            id=str(data["id"]),
            title=pick("title", "name") or "",
            file_path=pick("file_path", "filePath"),
            content_type=pick("content_type", "contentType", "category"),
            file_size=pick("file_size", "fileSize"),
            module_id=pick("module_id", "moduleId", "cohort_id"),
            raw=dict(data),
        )


@dataclass(frozen=True)
class SignedUpload:
    """Answer to an upload URL request."""
    upload_url: str
    file_path: str
    expires_at: datetime


@dataclass
class UploadSession:
    """
    Client-held state for one direct upload attempt.

    Never persisted. A new attempt always starts from a fresh session.
    """
    file_path: Path
    file_size: int
    mime_type: str
    target_path: Optional[str] = None
    upload_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    state: UploadState = UploadState.IDLE
    percent: int = 0
    bytes_sent: int = 0

    @property
    def filename(self) -> str:
        return self.file_path.name

    @property
    def is_terminal(self) -> bool:
        return self.state in (UploadState.COMPLETE, UploadState.FAILED)

    def transition(self, new_state: UploadState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid upload state transition: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def fail(self) -> None:
        """Move to FAILED from any in-flight state; no-op otherwise."""
        if self.state in (UploadState.IDLE, UploadState.COMPLETE, UploadState.FAILED):
            return
        self.transition(UploadState.FAILED)

    def expires_in(self, now: datetime) -> float:
        """Seconds until the signed URL expires (negative once expired)."""
        if self.expires_at is None:
            return 0.0
        return (self.expires_at - now).total_seconds()

    def update_progress(self, sent: int, total: int) -> int:
        """
        Record transfer progress and return the displayed percentage.

        Never decreases, and stays below 100 until mark_transferred().
        """
        if total <= 0:
            return self.percent
        self.bytes_sent = max(self.bytes_sent, min(sent, total))
        percent = min(round(self.bytes_sent * 100 / total), 99)
        if percent > self.percent:
            self.percent = percent
        return self.percent

    def mark_transferred(self) -> None:
        self.bytes_sent = self.file_size
        self.percent = 100


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of an upload operation."""
    filename: str
    status: UploadStatus = UploadStatus.SUCCESS
    path: UploadPath = UploadPath.SINGLE
    state: UploadState = UploadState.COMPLETE
    resource: Optional[StoredResource] = None
    file_path: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.SUCCESS

    @classmethod
    def ok(cls, filename: str, resource: StoredResource, path: UploadPath = UploadPath.SINGLE):
        return cls(
            filename=filename,
            status=UploadStatus.SUCCESS,
            path=path,
            state=UploadState.COMPLETE,
            resource=resource,
            file_path=resource.file_path,
        )

    @classmethod
    def fail(
        cls,
        filename: str,
        error: str,
        path: UploadPath = UploadPath.SINGLE,
        state: UploadState = UploadState.FAILED,
        file_path: Optional[str] = None,
    ):
        return cls(
            filename=filename,
            status=UploadStatus.FAILED,
            path=path,
            state=state,
            file_path=file_path,
            error=error,
        )


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    max_file_size: int = 100 * MB
    direct_upload_threshold: int = 4 * MB
    min_url_validity: float = 60.0  # seconds left on a signed URL
    transfer_timeout: float = 600.0  # seconds, PUT step only
    api_timeout: float = 30.0
    chunk_size: int = 256 * 1024
    max_concurrent_uploads: int = 3
    upload_url_endpoint: str = "/upload-url"
    confirm_endpoint: str = "/confirm-upload"
    small_upload_endpoint: str = "/upload"
    storage_api_key: Optional[str] = None
    accepted_extensions: tuple = ("pdf", "ppt", "pptx", "doc", "docx", "xls", "xlsx", "csv")

    def use_direct_upload(self, size: int) -> bool:
        """True when a file must skip the application server."""
        return size > self.direct_upload_threshold

    def is_accepted(self, path: Path) -> bool:
        return Path(path).suffix.lower().lstrip(".") in self.accepted_extensions
