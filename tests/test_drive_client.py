"""Tests for the Drive appDataFolder client."""

import json

import httpx
import pytest

from yearsync.models import ConfigDocumentV2, EventFilter
from yearsync.sync.drive import NETWORK_ERROR_CODE, DriveDocumentClient, is_retryable

FILES_PATH = "/drive/v3/files"
UPLOAD_PATH = "/upload/drive/v3/files"


def _document() -> ConfigDocumentV2:
    return ConfigDocumentV2(
        updated_at=1_700_000_000_000,
        device_id="device-a",
        filters=[EventFilter(id="f1", pattern="standup", created_at=1)],
        disabled_calendars=[],
        categories=[],
    )


class FakeDrive:
    """Minimal appDataFolder served through httpx.MockTransport."""

    def __init__(self, content=None):
        self.file_id = "file-1" if content is not None else None
        self.content = content
        self.requests: list[httpx.Request] = []
        self.failures: list[httpx.Response] = []
        self.delete_status = 204

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            return self.failures.pop(0)

        path = request.url.path
        if request.method == "GET" and path == FILES_PATH:
            files = [{"id": self.file_id, "name": "yearsync-config.json"}] if self.file_id else []
            return httpx.Response(200, json={"files": files})
        if request.method == "GET" and path == f"{FILES_PATH}/{self.file_id}":
            return httpx.Response(200, json=self.content)
        if request.method == "POST" and path == UPLOAD_PATH:
            self.file_id = "file-new"
            return httpx.Response(200, json={"id": "file-new", "name": "yearsync-config.json"})
        if request.method == "PATCH" and path == f"{UPLOAD_PATH}/{self.file_id}":
            self.content = json.loads(request.content)
            return httpx.Response(200, json={"id": self.file_id})
        if request.method == "DELETE":
            return httpx.Response(self.delete_status)
        return httpx.Response(404, json={"error": {"message": "Not found"}})

    def methods(self) -> list[str]:
        return [request.method for request in self.requests]


def _client(drive: FakeDrive, token="token", max_retries=3) -> DriveDocumentClient:
    return DriveDocumentClient(
        lambda: token,
        transport=httpx.MockTransport(drive.handler),
        max_retries=max_retries,
        retry_base_delay=0,
    )


def test_retryable_codes():
    assert is_retryable(500)
    assert is_retryable(503)
    assert is_retryable(429)
    assert is_retryable(NETWORK_ERROR_CODE)
    assert not is_retryable(400)
    assert not is_retryable(403)
    assert not is_retryable(404)


@pytest.mark.asyncio
async def test_read_missing_file_returns_none():
    drive = FakeDrive()

    result = await _client(drive).read()

    assert result.success
    assert result.data is None
    assert drive.methods() == ["GET"]


@pytest.mark.asyncio
async def test_read_returns_parsed_document():
    drive = FakeDrive(content=_document().to_wire())

    result = await _client(drive).read()

    assert result.success
    assert isinstance(result.data, ConfigDocumentV2)
    assert result.data.filters[0].pattern == "standup"
    assert drive.requests[0].headers["Authorization"] == "Bearer token"
    assert drive.requests[1].url.params["alt"] == "media"


@pytest.mark.asyncio
async def test_read_rejects_invalid_document():
    drive = FakeDrive(content={"version": 9, "updatedAt": 1})

    result = await _client(drive).read()

    assert not result.success
    assert result.error.code == 400
    assert result.error.message == "Invalid cloud config structure"


@pytest.mark.asyncio
async def test_write_creates_file_when_missing():
    drive = FakeDrive()

    result = await _client(drive).write(_document())

    assert result.success
    assert result.data.id == "file-new"
    create = drive.requests[-1]
    assert create.method == "POST"
    assert create.url.params["uploadType"] == "multipart"
    assert create.headers["Content-Type"].startswith("multipart/related")
    body = create.content.decode("utf-8")
    assert '"parents": ["appDataFolder"]' in body
    assert '"deviceId": "device-a"' in body


@pytest.mark.asyncio
async def test_write_replaces_existing_file():
    drive = FakeDrive(content={"old": True})

    result = await _client(drive).write(_document())

    assert result.success
    assert drive.methods() == ["GET", "PATCH"]
    assert drive.requests[-1].url.params["uploadType"] == "media"
    assert drive.content["version"] == 2
    assert drive.content["filters"][0]["pattern"] == "standup"


@pytest.mark.asyncio
async def test_delete_without_file_is_success():
    drive = FakeDrive()

    result = await _client(drive).delete()

    assert result.success
    assert "DELETE" not in drive.methods()


@pytest.mark.asyncio
async def test_delete_tolerates_concurrent_removal():
    drive = FakeDrive(content={})
    drive.delete_status = 404

    result = await _client(drive).delete()

    assert result.success
    assert drive.methods() == ["GET", "DELETE"]


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    drive = FakeDrive()
    drive.failures = [httpx.Response(503), httpx.Response(500)]

    result = await _client(drive).read()

    assert result.success
    assert len(drive.requests) == 3


@pytest.mark.asyncio
async def test_retries_give_up_after_limit():
    drive = FakeDrive()
    drive.failures = [httpx.Response(429) for _ in range(5)]

    result = await _client(drive, max_retries=2).read()

    assert not result.success
    assert result.error.code == 429
    assert len(drive.requests) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    drive = FakeDrive()
    drive.failures = [
        httpx.Response(
            403,
            json={"error": {"message": "The granted scopes do not allow use of the Application Data folder.",
                            "status": "PERMISSION_DENIED"}},
        )
    ]

    result = await _client(drive).read()

    assert not result.success
    assert result.error.code == 403
    assert result.error.status == "PERMISSION_DENIED"
    assert "Application Data folder" in result.error.message
    assert len(drive.requests) == 1


@pytest.mark.asyncio
async def test_network_errors_are_retried_then_reported():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = DriveDocumentClient(
        lambda: "token",
        transport=httpx.MockTransport(handler),
        max_retries=1,
        retry_base_delay=0,
    )

    result = await client.find_file()

    assert not result.success
    assert result.error.code == NETWORK_ERROR_CODE
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_missing_token_fails_without_request():
    drive = FakeDrive()

    result = await _client(drive, token=None).write(_document())

    assert not result.success
    assert result.error.code == 401
    assert result.error.message == "Not authenticated"
    assert drive.requests == []
