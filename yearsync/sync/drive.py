"""
Google Drive appDataFolder client for the cloud config document.

The appDataFolder is a hidden per-app, per-user folder; the whole sync state
lives in one JSON file there. Every call classifies failures by HTTP status:
5xx, 429 and network errors are retried with exponential backoff, anything
else is returned to the caller as a ``DriveError``.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Generic, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel

from yearsync.config import get_settings
from yearsync.models import (
    ConfigDocumentV1,
    ConfigDocumentV2,
    InvalidDocumentError,
    parse_document,
)

logger = logging.getLogger(__name__)

APP_DATA_FOLDER = "appDataFolder"
MIME_TYPE = "application/json"
FILE_FIELDS = "id,name,mimeType,modifiedTime"
MULTIPART_BOUNDARY = "-------yearsync_boundary"

# Status code used for transport-level failures with no HTTP response
NETWORK_ERROR_CODE = 0

T = TypeVar("T")

TokenProvider = Callable[[], Optional[str]]


class DriveError(BaseModel):
    code: int
    message: str
    status: Optional[str] = None


class DriveFile(BaseModel):
    id: str
    name: Optional[str] = None
    mimeType: Optional[str] = None
    modifiedTime: Optional[str] = None


class DriveResult(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[DriveError] = None

    @classmethod
    def ok(cls, data: Any = None) -> "DriveResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: DriveError) -> "DriveResult":
        return cls(success=False, error=error)


def is_retryable(code: int) -> bool:
    """Transient failures: server errors, rate limiting and network errors."""
    return code >= 500 or code == 429 or code == NETWORK_ERROR_CODE


def _error_from_response(response: httpx.Response) -> DriveError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        error = {}
    return DriveError(
        code=response.status_code,
        message=error.get("message") or response.reason_phrase or f"HTTP {response.status_code}",
        status=error.get("status"),
    )


class DriveDocumentClient:
    """Find, read, write and delete the config document in appDataFolder."""

    def __init__(
        self,
        token_provider: TokenProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        settings = get_settings()
        self.token_provider = token_provider
        self.transport = transport
        self.api_base = settings.drive_api_base
        self.upload_base = settings.drive_upload_base
        self.filename = settings.config_filename
        self.timeout = settings.drive_request_timeout_seconds
        self.max_retries = settings.drive_max_retries if max_retries is None else max_retries
        self.retry_base_delay = (
            settings.drive_retry_base_delay_seconds if retry_base_delay is None else retry_base_delay
        )

    def _auth_headers(self) -> Optional[dict]:
        token = self.token_provider()
        if not token:
            return None
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[dict] = None,
        content: Optional[bytes] = None,
        headers: Optional[dict] = None,
    ) -> DriveResult:
        """Send an authenticated request, retrying transient failures."""
        attempt = 0
        while True:
            request_headers = self._auth_headers()
            if request_headers is None:
                return DriveResult.fail(DriveError(code=401, message="Not authenticated"))
            request_headers.update(headers or {})

            try:
                async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                    response = await client.request(
                        method,
                        url,
                        headers=request_headers,
                        params=params,
                        content=content,
                    )
            except httpx.HTTPError as e:
                error = DriveError(code=NETWORK_ERROR_CODE, message=str(e) or "Network error")
            else:
                if response.is_success:
                    if response.status_code == 204 or not response.content:
                        return DriveResult.ok()
                    try:
                        return DriveResult.ok(response.json())
                    except ValueError:
                        return DriveResult.fail(
                            DriveError(code=response.status_code, message="Drive returned malformed JSON")
                        )
                error = _error_from_response(response)

            if not is_retryable(error.code) or attempt >= self.max_retries:
                return DriveResult.fail(error)

            delay = self.retry_base_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                f"Drive API error {error.code} ({error.message}), retrying in {delay}s "
                f"(attempt {attempt}/{self.max_retries})"
            )
            await asyncio.sleep(delay)

    async def find_file(self) -> DriveResult[Optional[DriveFile]]:
        """Look up the config file by name."""
        result = await self._request(
            "GET",
            f"{self.api_base}/files",
            params={
                "spaces": APP_DATA_FOLDER,
                "fields": f"files({FILE_FIELDS})",
                "q": f"name='{self.filename}'",
            },
        )
        if not result.success:
            return result

        files = (result.data or {}).get("files") or []
        return DriveResult.ok(DriveFile.model_validate(files[0]) if files else None)

    async def read(self) -> DriveResult[Optional[Union[ConfigDocumentV1, ConfigDocumentV2]]]:
        """Download and validate the config document; data is None when absent."""
        found = await self.find_file()
        if not found.success:
            return found
        if found.data is None:
            return DriveResult.ok(None)

        result = await self._request(
            "GET",
            f"{self.api_base}/files/{found.data.id}",
            params={"alt": "media"},
        )
        if not result.success:
            return result

        try:
            document = parse_document(result.data)
        except InvalidDocumentError as e:
            logger.warning(f"Rejected cloud config: {e}")
            return DriveResult.fail(DriveError(code=400, message="Invalid cloud config structure"))

        return DriveResult.ok(document)

    async def write(self, document: Union[ConfigDocumentV1, ConfigDocumentV2]) -> DriveResult[DriveFile]:
        """Create the config file if absent, otherwise replace its whole content."""
        if self._auth_headers() is None:
            return DriveResult.fail(DriveError(code=401, message="Not authenticated"))

        found = await self.find_file()
        if not found.success:
            return found

        content = json.dumps(document.to_wire(), indent=2)
        if found.data is not None:
            result = await self._update_file(found.data.id, content)
        else:
            result = await self._create_file(content)

        if not result.success:
            return result
        return DriveResult.ok(DriveFile.model_validate(result.data) if result.data else None)

    async def _create_file(self, content: str) -> DriveResult:
        metadata = {
            "name": self.filename,
            "mimeType": MIME_TYPE,
            "parents": [APP_DATA_FOLDER],
        }
        body = "\r\n".join([
            f"--{MULTIPART_BOUNDARY}",
            "Content-Type: application/json; charset=UTF-8",
            "",
            json.dumps(metadata),
            f"--{MULTIPART_BOUNDARY}",
            f"Content-Type: {MIME_TYPE}",
            "",
            content,
            f"--{MULTIPART_BOUNDARY}--",
        ])
        logger.info(f"Creating cloud config file {self.filename}")
        return await self._request(
            "POST",
            f"{self.upload_base}/files",
            params={"uploadType": "multipart", "fields": FILE_FIELDS},
            content=body.encode("utf-8"),
            headers={"Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}"},
        )

    async def _update_file(self, file_id: str, content: str) -> DriveResult:
        return await self._request(
            "PATCH",
            f"{self.upload_base}/files/{file_id}",
            params={"uploadType": "media", "fields": FILE_FIELDS},
            content=content.encode("utf-8"),
            headers={"Content-Type": MIME_TYPE},
        )

    async def delete(self) -> DriveResult[None]:
        """Delete the config file. Succeeds when there is nothing to delete."""
        found = await self.find_file()
        if not found.success:
            return found
        if found.data is None:
            return DriveResult.ok()

        result = await self._request("DELETE", f"{self.api_base}/files/{found.data.id}")
        if not result.success and result.error.code == 404:
            # Removed concurrently by another device
            return DriveResult.ok()
        if result.success:
            logger.info(f"Deleted cloud config file {self.filename}")
        return result
