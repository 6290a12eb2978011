"""Tests for resource_uploader services."""
import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from resource_uploader.errors import (
    ConfirmUploadError,
    FileTooLargeError,
    NetworkError,
    StorageUploadError,
    UploadError,
    UploadTimeoutError,
    UploadUrlError,
)
from resource_uploader.models import ResourceMetadata, UploadConfig
from resource_uploader.services import (
    HTTPAPIClient,
    ResourceRepository,
    StorageService,
    parse_timestamp,
)

API_URL = "https://api.test/api/admin/resources"
SIGNED_URL = "https://storage.test/object/upload/sign/resources/global/1_deck.pdf?token=abc"


class DroppingTransport(httpx.AsyncBaseTransport):
    """Reads the request body and drops the connection after fail_after bytes."""

    def __init__(self, fail_after: int):
        self.fail_after = fail_after
        self.bytes_received = 0

    async def handle_async_request(self, request):
        async for chunk in request.stream:
            self.bytes_received += len(chunk)
            if self.bytes_received >= self.fail_after:
                raise httpx.WriteError("connection reset by peer", request=request)
        return httpx.Response(200)


class StalledTransport(httpx.AsyncBaseTransport):
    """Never answers."""

    async def handle_async_request(self, request):
        await asyncio.sleep(10)
        return httpx.Response(200)


def _metadata(**overrides):
    values = dict(
        title="Week 1 slides",
        module_id="mod-1",
        content_type="slides",
        owner_scope="cohort-9",
        session_number=1,
        order_index=2,
    )
    values.update(overrides)
    return ResourceMetadata(**values)


def _repository(handler, config=None):
    client = HTTPAPIClient(API_URL, transport=httpx.MockTransport(handler))
    return client, ResourceRepository(client, config or UploadConfig())


class TestParseTimestamp:
    def test_iso_with_z_suffix(self):
        assert parse_timestamp("2026-03-01T12:00:00Z") == datetime(2026, 3, 1, 12, tzinfo=timezone.utc)

    def test_iso_with_offset_and_fraction(self):
        parsed = parse_timestamp("2026-03-01T14:00:00.123+02:00")
        assert parsed.astimezone(timezone.utc).hour == 12

    def test_epoch_seconds(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        assert parse_timestamp(datetime(2026, 3, 1, 12)).tzinfo == timezone.utc

    @pytest.mark.parametrize("value", ["", "tomorrow", None])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestHTTPAPIClient:
    @pytest.mark.asyncio
    async def test_requires_context(self):
        client = HTTPAPIClient(API_URL)
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.post("/upload-url", json={})

    @pytest.mark.asyncio
    async def test_sends_configured_headers(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={})

        client = HTTPAPIClient(
            API_URL,
            headers={"Authorization": "Bearer admin"},
            transport=httpx.MockTransport(handler),
        )
        async with client:
            await client.post("/upload-url", json={})
        assert seen["auth"] == "Bearer admin"


class TestRequestUploadUrl:
    @pytest.mark.asyncio
    async def test_returns_signed_upload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "uploadUrl": SIGNED_URL,
                "filePath": "cohort-9/1_deck.pdf",
                "expiresAt": "2026-03-01T13:00:00Z",
            })

        client, repository = _repository(handler)
        async with client:
            signed = await repository.request_upload_url("deck.pdf", 10_000_000, "application/pdf", "cohort-9")

        assert seen["path"] == "/api/admin/resources/upload-url"
        assert seen["body"] == {
            "filename": "deck.pdf",
            "fileSize": 10_000_000,
            "contentType": "application/pdf",
            "ownerScope": "cohort-9",
        }
        assert signed.upload_url == SIGNED_URL
        assert signed.file_path == "cohort-9/1_deck.pdf"
        assert signed.expires_at == datetime(2026, 3, 1, 13, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_413_means_file_too_large(self):
        client, repository = _repository(lambda request: httpx.Response(413, json={"error": "too big"}))
        async with client:
            with pytest.raises(FileTooLargeError) as exc_info:
                await repository.request_upload_url("deck.pdf", 1, "application/pdf", "global")
        assert exc_info.value.user_message == "File too large. Maximum upload size is 100MB."

    @pytest.mark.asyncio
    async def test_server_error_message_is_surfaced(self):
        client, repository = _repository(
            lambda request: httpx.Response(400, json={"error": "Invalid file type"})
        )
        async with client:
            with pytest.raises(UploadUrlError, match="Invalid file type"):
                await repository.request_upload_url("deck.exe", 1, "application/x-msdownload", "global")

    @pytest.mark.asyncio
    async def test_status_used_when_body_is_empty(self):
        client, repository = _repository(lambda request: httpx.Response(500))
        async with client:
            with pytest.raises(UploadUrlError, match="status 500"):
                await repository.request_upload_url("deck.pdf", 1, "application/pdf", "global")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        client, repository = _repository(lambda request: httpx.Response(200, json={"uploadUrl": SIGNED_URL}))
        async with client:
            with pytest.raises(UploadUrlError, match="Malformed"):
                await repository.request_upload_url("deck.pdf", 1, "application/pdf", "global")

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, repository = _repository(handler)
        async with client:
            with pytest.raises(UploadUrlError, match="connection refused"):
                await repository.request_upload_url("deck.pdf", 1, "application/pdf", "global")


class TestConfirmUpload:
    @pytest.mark.asyncio
    async def test_creates_resource_from_metadata(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"resource": {
                "id": "res-1",
                "title": "Week 1 slides",
                "file_path": "cohort-9/1_deck.pdf",
                "module_id": "mod-1",
            }})

        client, repository = _repository(handler)
        async with client:
            resource = await repository.confirm_upload(
                "cohort-9/1_deck.pdf", _metadata(), "deck.pdf", 10_000_000
            )

        assert seen["path"] == "/api/admin/resources/confirm-upload"
        assert seen["body"] == {
            "filePath": "cohort-9/1_deck.pdf",
            "moduleId": "mod-1",
            "title": "Week 1 slides",
            "contentType": "slides",
            "fileType": "pdf",
            "fileSize": 10_000_000,
            "sessionNumber": 1,
            "orderIndex": 2,
            "durationSeconds": None,
        }
        assert resource.id == "res-1"
        assert resource.file_path == "cohort-9/1_deck.pdf"

    @pytest.mark.asyncio
    async def test_rejection_is_a_save_failure(self):
        client, repository = _repository(
            lambda request: httpx.Response(400, json={"error": "File not found in storage"})
        )
        async with client:
            with pytest.raises(ConfirmUploadError) as exc_info:
                await repository.confirm_upload("global/1_deck.pdf", _metadata(), "deck.pdf", 1)
        assert exc_info.value.user_message == "Failed to save resource record: File not found in storage"

    @pytest.mark.asyncio
    async def test_missing_resource_in_answer(self):
        client, repository = _repository(lambda request: httpx.Response(200, json={"ok": True}))
        async with client:
            with pytest.raises(ConfirmUploadError, match="malformed response"):
                await repository.confirm_upload("global/1_deck.pdf", _metadata(), "deck.pdf", 1)


class TestUploadSmall:
    @pytest.mark.asyncio
    async def test_sends_multipart_form(self, make_file):
        path = make_file("notes.pdf", 2048)
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = request.content
            return httpx.Response(200, json={"resource": {"id": "res-2", "title": "Notes"}})

        client, repository = _repository(handler)
        async with client:
            resource = await repository.upload_small(path, _metadata(title="Notes"), "application/pdf")

        assert resource.id == "res-2"
        assert seen["path"] == "/api/admin/resources/upload"
        assert seen["content_type"].startswith("multipart/form-data")
        assert b'name="module_id"' in seen["body"]
        assert b'name="cohort_id"' in seen["body"]
        assert b'name="session_number"' in seen["body"]
        assert b'name="duration_seconds"' not in seen["body"]
        assert b'filename="notes.pdf"' in seen["body"]

    @pytest.mark.asyncio
    async def test_accepts_bare_record(self, make_file):
        path = make_file("notes.pdf", 10)
        client, repository = _repository(
            lambda request: httpx.Response(201, json={"id": 5, "name": "notes.pdf"})
        )
        async with client:
            resource = await repository.upload_small(path, _metadata(), "application/pdf")
        assert resource.id == "5"
        assert resource.title == "notes.pdf"

    @pytest.mark.asyncio
    async def test_413(self, make_file):
        path = make_file("notes.pdf", 10)
        client, repository = _repository(lambda request: httpx.Response(413, text="Payload Too Large"))
        async with client:
            with pytest.raises(FileTooLargeError):
                await repository.upload_small(path, _metadata(), "application/pdf")

    @pytest.mark.asyncio
    async def test_other_status(self, make_file):
        path = make_file("notes.pdf", 10)
        client, repository = _repository(lambda request: httpx.Response(500, json={"error": "db down"}))
        async with client:
            with pytest.raises(UploadError, match="db down"):
                await repository.upload_small(path, _metadata(), "application/pdf")


class TestStorageService:
    @pytest.mark.asyncio
    async def test_requires_context(self, make_file):
        service = StorageService()
        with pytest.raises(RuntimeError, match="not initialized"):
            await service.put_file(SIGNED_URL, make_file("deck.pdf", 10), "application/pdf")

    @pytest.mark.asyncio
    async def test_puts_raw_bytes_with_progress(self, make_file):
        path = make_file("deck.pdf", 600 * 1024)
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["size"] = len(request.content)
            return httpx.Response(200, json={"Key": "resources/global/1_deck.pdf"})

        progress = []
        config = UploadConfig(chunk_size=256 * 1024, storage_api_key="anon-key")
        async with StorageService(config, transport=httpx.MockTransport(handler)) as service:
            await service.put_file(
                SIGNED_URL,
                path,
                "application/pdf",
                lambda sent, total: progress.append((sent, total)),
            )

        total = 600 * 1024
        assert seen["method"] == "PUT"
        assert seen["url"] == SIGNED_URL
        assert seen["size"] == total
        assert seen["headers"]["Content-Type"] == "application/pdf"
        assert seen["headers"]["Content-Length"] == str(total)
        assert seen["headers"]["apikey"] == "anon-key"
        assert seen["headers"]["Authorization"] == "Bearer anon-key"
        assert [sent for sent, _ in progress] == [256 * 1024, 512 * 1024, total]
        assert all(t == total for _, t in progress)

    @pytest.mark.asyncio
    async def test_no_key_headers_without_key(self, make_file):
        path = make_file("deck.pdf", 100)
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            return httpx.Response(200)

        async with StorageService(transport=httpx.MockTransport(handler)) as service:
            await service.put_file(SIGNED_URL, path, "application/pdf")

        assert "apikey" not in seen["headers"]
        assert "Authorization" not in seen["headers"]

    @pytest.mark.asyncio
    async def test_non_2xx_status(self, make_file):
        path = make_file("deck.pdf", 100)
        transport = httpx.MockTransport(lambda request: httpx.Response(403, text="signature mismatch"))
        async with StorageService(transport=transport) as service:
            with pytest.raises(StorageUploadError) as exc_info:
                await service.put_file(SIGNED_URL, path, "application/pdf")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "signature mismatch"
        assert exc_info.value.user_message == "Upload failed with status 403"

    @pytest.mark.asyncio
    async def test_connection_drop_mid_transfer(self, make_file):
        path = make_file("deck.pdf", 1024 * 1024)
        transport = DroppingTransport(fail_after=300 * 1024)
        progress = []
        config = UploadConfig(chunk_size=128 * 1024)
        async with StorageService(config, transport=transport) as service:
            with pytest.raises(NetworkError) as exc_info:
                await service.put_file(
                    SIGNED_URL,
                    path,
                    "application/pdf",
                    lambda sent, total: progress.append(sent),
                )

        assert exc_info.value.user_message == "Network error during upload. Please check your connection."
        assert progress
        assert max(progress) < 1024 * 1024

    @pytest.mark.asyncio
    async def test_transfer_bound(self, make_file):
        path = make_file("deck.pdf", 100)
        config = UploadConfig(transfer_timeout=0.05)
        async with StorageService(config, transport=StalledTransport()) as service:
            with pytest.raises(UploadTimeoutError):
                await service.put_file(SIGNED_URL, path, "application/pdf")

    @pytest.mark.asyncio
    async def test_transport_timeout(self, make_file):
        path = make_file("deck.pdf", 100)

        def handler(request):
            raise httpx.WriteTimeout("write timed out", request=request)

        async with StorageService(transport=httpx.MockTransport(handler)) as service:
            with pytest.raises(UploadTimeoutError):
                await service.put_file(SIGNED_URL, path, "application/pdf")


def test_services_satisfy_protocols():
    from resource_uploader.protocols import IAPIClient, IStorageUploader

    assert isinstance(HTTPAPIClient(API_URL), IAPIClient)
    assert isinstance(StorageService(), IStorageUploader)
