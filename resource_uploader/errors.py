"""
Upload error taxonomy.

Every failure of an upload attempt maps to one of these, and each carries
the message shown to the user. None of them is retried automatically.
"""
from typing import Any, Optional


def describe_exception(exc: BaseException) -> str:
    """User-facing text for any exception raised during an upload."""
    if isinstance(exc, UploadError):
        return exc.user_message
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"


class UploadError(RuntimeError):
    """Base class for upload failures."""

    default_message = "Upload failed"

    def __init__(self, message: Optional[str] = None):
        self.user_message = message or self.default_message
        super().__init__(self.user_message)


class FileTooLargeError(UploadError):
    default_message = "File too large. Maximum upload size is 100MB."


class EmptyFileError(UploadError):
    default_message = "File is empty."


class UploadUrlError(UploadError):
    default_message = "Failed to get upload URL"


class UploadUrlExpiredError(UploadError):
    default_message = "Upload URL expired. Please request a new upload and try again."


class NetworkError(UploadError):
    default_message = "Network error during upload. Please check your connection."


class UploadTimeoutError(UploadError):
    default_message = "Upload timed out. Please try again."


class StorageUploadError(UploadError):
    """Storage answered the PUT with a non-2xx status."""

    def __init__(self, status_code: int, detail: Optional[str] = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Upload failed with status {status_code}")


class ConfirmUploadError(UploadError):
    """The blob may now be an orphan; it is not cleaned up here."""

    default_message = "Failed to save resource record"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail
        message = self.default_message
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class APIError(RuntimeError):
    """Application server answered with status >= 400."""

    def __init__(self, status_code: int, method: str, endpoint: str, detail: Any = None):
        self.status_code = status_code
        self.method = method
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"API error {status_code} on {method} {endpoint}: {detail}")

    @property
    def message(self) -> Optional[str]:
        """Best human-readable message from the error body."""
        if isinstance(self.detail, dict):
            value = self.detail.get("error") or self.detail.get("message")
            return str(value) if value else None
        if isinstance(self.detail, str) and self.detail.strip():
            return self.detail.strip()
        return None
