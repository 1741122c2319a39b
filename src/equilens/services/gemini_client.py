"""HTTP client for the Gemini Files and generateContent APIs."""

import logging
from typing import Any

import httpx

from equilens.config import Settings
from equilens.errors import (
    AnalysisServiceError,
    ChunkUploadError,
    ConfigurationError,
    RemoteStatusError,
    SessionStartError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_UPLOAD_BASE = "https://generativelanguage.googleapis.com/upload/v1beta"

UPLOAD_URL_HEADER = "X-Goog-Upload-URL"
COMMAND_CONTINUE = "upload"
COMMAND_FINALIZE = "upload, finalize"


class GeminiFileService:
    """Wire-level client for the remote analysis service.

    Owns one ``httpx.AsyncClient``; use as an async context manager or call
    ``aclose()``. Pass ``transport`` to route requests elsewhere (tests use
    ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-2.5-pro",
        api_base: str = DEFAULT_API_BASE,
        upload_base: str = DEFAULT_UPLOAD_BASE,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY not configured")
        self._api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.upload_base = upload_base.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "GeminiFileService":
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            api_base=settings.gemini_api_base,
            upload_base=settings.gemini_upload_base,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def _auth_headers(self) -> dict[str, str]:
        return {"x-goog-api-key": self._api_key}

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GeminiFileService":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Resumable upload
    # ------------------------------------------------------------------

    async def start_upload(self, display_name: str, total_bytes: int, mime_type: str) -> str:
        """Negotiate a resumable upload and return its opaque upload URL.

        Raises:
            SessionStartError: If the request is rejected or no URL is returned.
        """
        try:
            response = await self._client.post(
                f"{self.upload_base}/files",
                headers={
                    **self._auth_headers(),
                    "X-Goog-Upload-Protocol": "resumable",
                    "X-Goog-Upload-Command": "start",
                    "X-Goog-Upload-Header-Content-Length": str(total_bytes),
                    "X-Goog-Upload-Header-Content-Type": mime_type,
                },
                json={"file": {"display_name": display_name}},
            )
        except httpx.HTTPError as e:
            raise SessionStartError(f"Failed to start upload: {e}") from e

        if not response.is_success:
            detail = _extract_error(response)
            logger.error("Upload start rejected: %s %s", response.status_code, detail)
            raise SessionStartError(
                f"Failed to start upload: {response.status_code}",
                status_code=response.status_code,
                details=detail,
            )

        upload_url = response.headers.get(UPLOAD_URL_HEADER)
        if not upload_url:
            raise SessionStartError(
                "No upload URL returned from Gemini", status_code=response.status_code
            )
        return upload_url

    async def upload_chunk(
        self,
        upload_url: str,
        offset: int,
        data: bytes,
        finalize: bool,
    ) -> dict[str, Any] | None:
        """Send one chunk; return the ``file`` object when finalizing.

        The upload URL carries its own session authorization, so the API key
        is not sent with chunks.

        Raises:
            ChunkUploadError: If the transfer fails or the finalize response
                carries no file.
        """
        command = COMMAND_FINALIZE if finalize else COMMAND_CONTINUE
        try:
            response = await self._client.post(
                upload_url,
                headers={
                    "X-Goog-Upload-Offset": str(offset),
                    "X-Goog-Upload-Command": command,
                },
                content=data,
            )
        except httpx.HTTPError as e:
            raise ChunkUploadError(f"Failed to upload chunk at offset {offset}: {e}", offset) from e

        if not response.is_success:
            detail = _extract_error(response)
            logger.error(
                "Chunk upload rejected: offset=%d status=%s %s",
                offset,
                response.status_code,
                detail,
            )
            raise ChunkUploadError(
                f"Failed to upload chunk: {response.status_code}",
                offset,
                status_code=response.status_code,
                details=detail,
            )

        if not finalize:
            return None

        try:
            file_info = response.json().get("file")
        except ValueError as e:
            raise ChunkUploadError(
                "Finalize response is not valid JSON", offset, status_code=response.status_code
            ) from e
        if not isinstance(file_info, dict) or not file_info.get("name"):
            raise ChunkUploadError(
                "Finalize response does not describe the uploaded file",
                offset,
                status_code=response.status_code,
                details=file_info,
            )
        return file_info

    async def get_file(self, name: str) -> dict[str, Any]:
        """Fetch ``{state, uri, mimeType, ...}`` for ``files/<id>``.

        Raises:
            RemoteStatusError: On transport failure or non-2xx status.
        """
        try:
            response = await self._client.get(
                f"{self.api_base}/{name}", headers=self._auth_headers()
            )
        except httpx.HTTPError as e:
            raise RemoteStatusError(f"Failed to check status: {e}") from e

        if not response.is_success:
            raise RemoteStatusError(
                f"Failed to check status: {response.status_code}",
                status_code=response.status_code,
                details=_extract_error(response),
            )
        try:
            status = response.json()
        except ValueError as e:
            raise RemoteStatusError("Status response is not valid JSON") from e
        if not isinstance(status, dict):
            raise RemoteStatusError("Status response is not a JSON object", details=status)
        return status

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def generate_content(self, body: dict[str, Any]) -> dict[str, Any]:
        """POST a generateContent request and return the decoded response.

        Raises:
            AnalysisServiceError: On transport failure, non-2xx status or a
                non-JSON body.
        """
        url = f"{self.api_base}/models/{self.model}:generateContent"
        try:
            response = await self._client.post(url, json=body, headers=self._auth_headers())
        except httpx.HTTPError as e:
            raise AnalysisServiceError(f"Gemini HTTP error: {e}") from e

        if not response.is_success:
            detail = _extract_error(response)
            logger.error("Gemini API error: %s %s", response.status_code, detail)
            raise AnalysisServiceError(
                f"Gemini API error: {response.status_code}",
                status_code=response.status_code,
                details=detail,
            )
        try:
            return response.json()
        except ValueError as e:
            raise AnalysisServiceError(
                "Gemini returned a non-JSON response", status_code=response.status_code
            ) from e


def _extract_error(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:500]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        message = (error.get("message") or "").strip()
        status = (error.get("status") or "").strip()
        return " ".join(part for part in (status, message) if part)
    return str(data)[:500]


def is_upload_url(upload_url: str, upload_base: str) -> bool:
    """True if ``upload_url`` has the same scheme and host as ``upload_base``."""
    try:
        url = httpx.URL(upload_url)
    except httpx.InvalidURL:
        return False
    base = httpx.URL(upload_base)
    return url.scheme == base.scheme and url.host == base.host and url.port == base.port
