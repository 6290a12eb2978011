"""
resource_uploader - upload learning resources to the admin backend.

Small files go through the application server in one call. Larger files
are written straight to blob storage through a pre-signed URL and then
confirmed, so the server only records resources whose file exists.

Usage:
    from resource_uploader import UploadOrchestrator, ResourceMetadata

    metadata = ResourceMetadata(
        title="Week 3 slides",
        module_id="mod-123",
        content_type="slides",
        owner_scope="cohort-42",
    )
    async with UploadOrchestrator(api_url) as uploader:
        result = await uploader.upload(pdf_path, metadata)
        if not result.success:
            print(result.error)
"""
from .errors import (
    APIError,
    ConfirmUploadError,
    EmptyFileError,
    FileTooLargeError,
    NetworkError,
    StorageUploadError,
    UploadError,
    UploadTimeoutError,
    UploadUrlError,
    UploadUrlExpiredError,
)
from .models import (
    ResourceMetadata,
    StoredResource,
    UploadConfig,
    UploadPath,
    UploadResult,
    UploadSession,
    UploadState,
    UploadStatus,
)
from .orchestrator import QueueItem, QueueUploadProcess, QueueUploadResult, UploadOrchestrator

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "QueueItem",
    "QueueUploadProcess",
    "QueueUploadResult",
    # Models
    "ResourceMetadata",
    "StoredResource",
    "UploadConfig",
    "UploadPath",
    "UploadResult",
    "UploadSession",
    "UploadState",
    "UploadStatus",
    # Errors
    "APIError",
    "ConfirmUploadError",
    "EmptyFileError",
    "FileTooLargeError",
    "NetworkError",
    "StorageUploadError",
    "UploadError",
    "UploadTimeoutError",
    "UploadUrlError",
    "UploadUrlExpiredError",
]
