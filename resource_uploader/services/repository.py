"""
Resource Repository - Single Responsibility: talk to the resource API.

Implements Repository Pattern: callers never build request bodies or
parse responses themselves. The client never writes a resource record
directly, it only asks the server to create one.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from ..errors import (
    APIError,
    ConfirmUploadError,
    FileTooLargeError,
    NetworkError,
    UploadError,
    UploadUrlError,
)
from ..models import ResourceMetadata, SignedUpload, StoredResource, UploadConfig
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

HTTP_PAYLOAD_TOO_LARGE = 413


def parse_timestamp(value: Union[str, int, float, datetime]) -> datetime:
    """Parse an ISO-8601 string or epoch seconds into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value, tz=timezone.utc)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ResourceRepository:
    """Repository for the upload endpoints of the resource API."""

    def __init__(self, api_client: IAPIClient, config: Optional[UploadConfig] = None):
        """
        Initialize repository.

        Args:
            api_client: HTTP client for API calls
            config: Upload configuration (endpoints)
        """
        self._api = api_client
        self._config = config or UploadConfig()

    async def request_upload_url(
        self,
        filename: str,
        file_size: int,
        mime_type: str,
        owner_scope: str,
    ) -> SignedUpload:
        """
        Ask the server to authorize a direct write to storage.

        Raises:
            FileTooLargeError: server refused the size (413)
            UploadUrlError: any other failure or a malformed answer
        """
        endpoint = self._config.upload_url_endpoint
        try:
            response = await self._api.post(endpoint, json={
                "filename": filename,
                "fileSize": file_size,
                "contentType": mime_type,
                "ownerScope": owner_scope,
            })
        except APIError as exc:
            if exc.status_code == HTTP_PAYLOAD_TOO_LARGE:
                raise FileTooLargeError() from exc
            raise UploadUrlError(
                exc.message or f"Upload URL request failed with status {exc.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise UploadUrlError(f"Failed to get upload URL: {exc}") from exc

        try:
            data = response.json()
            signed = SignedUpload(
                upload_url=data["uploadUrl"],
                file_path=data["filePath"],
                expires_at=parse_timestamp(data["expiresAt"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise UploadUrlError("Malformed upload URL response") from exc

        logger.debug(
            "Upload URL received: file_path=%s expires_at=%s",
            signed.file_path,
            signed.expires_at.isoformat(),
        )
        return signed

    async def confirm_upload(
        self,
        file_path: str,
        metadata: ResourceMetadata,
        filename: str,
        file_size: int,
    ) -> StoredResource:
        """
        Ask the server to verify the blob and create its resource record.

        Raises:
            ConfirmUploadError: server refused or answered without a record
        """
        endpoint = self._config.confirm_endpoint
        try:
            response = await self._api.post(endpoint, json={
                "filePath": file_path,
                "moduleId": metadata.module_id,
                "title": metadata.title,
                "contentType": metadata.content_type,
                "fileType": metadata.resolve_file_type(filename),
                "fileSize": file_size,
                "sessionNumber": metadata.session_number,
                "orderIndex": metadata.order_index,
                "durationSeconds": metadata.duration_seconds,
            })
        except APIError as exc:
            raise ConfirmUploadError(exc.message) from exc
        except httpx.RequestError as exc:
            raise ConfirmUploadError(str(exc) or type(exc).__name__) from exc

        try:
            return StoredResource.from_api(response.json()["resource"])
        except (ValueError, KeyError, TypeError) as exc:
            raise ConfirmUploadError("malformed response") from exc

    async def upload_small(
        self,
        path: Path,
        metadata: ResourceMetadata,
        mime_type: str,
    ) -> StoredResource:
        """
        Send a small file and its metadata through the server in one call.

        Raises:
            FileTooLargeError: server refused the size (413)
            UploadError: any other failure
        """
        path = Path(path)
        form: Dict[str, Any] = {
            "cohort_id": metadata.owner_scope,
            "module_id": metadata.module_id,
            "title": metadata.title,
            "content_type": metadata.content_type,
            "file_type": metadata.resolve_file_type(path.name),
            "order_index": str(metadata.order_index),
        }
        if metadata.session_number is not None:
            form["session_number"] = str(metadata.session_number)
        if metadata.duration_seconds is not None:
            form["duration_seconds"] = str(metadata.duration_seconds)

        endpoint = self._config.small_upload_endpoint
        try:
            with open(path, "rb") as fh:
                response = await self._api.post_multipart(
                    endpoint,
                    data=form,
                    files={"file": (path.name, fh, mime_type)},
                )
        except APIError as exc:
            if exc.status_code == HTTP_PAYLOAD_TOO_LARGE:
                raise FileTooLargeError() from exc
            raise UploadError(
                exc.message or f"Upload failed with status {exc.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise NetworkError() from exc

        try:
            data = response.json()
            record = data.get("resource", data) if isinstance(data, dict) else data
            return StoredResource.from_api(record)
        except (ValueError, TypeError, AttributeError) as exc:
            raise UploadError("Failed to upload file: malformed response") from exc
