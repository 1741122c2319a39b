"""Resumable chunked upload driver.

A session moves one MediaAsset to the remote service:

    idle -> started -> uploading -> finalizing -> processing -> active | failed

Chunks are sent strictly in offset order. A failed chunk is not retried
here; ``bytes_sent`` only advances on acknowledgment, so calling
``upload()`` again resumes from the first unacknowledged byte (provided the
remote session is still valid).
"""

import asyncio
import logging

from pydantic import ValidationError

from equilens.errors import (
    ChunkUploadError,
    ProcessingTimeoutError,
    RemoteProcessingFailedError,
    RemoteStatusError,
    UploadCancelledError,
)
from equilens.models.media import MediaAsset
from equilens.models.progress import UploadProgress, UploadProgressCallback, UploadStage
from equilens.models.upload import (
    ChunkAck,
    RemoteFileHandle,
    RemoteFileState,
    SessionState,
    UploadSession,
)
from equilens.services.interfaces import IRemoteFileService

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 3 * 1024 * 1024
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLL_ATTEMPTS = 60

# Overall percent bands: chunk transfer 0-50, polling 50-90, active 100
UPLOAD_BAND = 50
POLL_BAND_START = 50
POLL_BAND_END = 90


class CancellationToken:
    """Cooperative cancellation flag checked between network steps.

    A request that is already in flight is allowed to finish; its result is
    discarded once the token is observed.
    """

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UploadCancelledError("Upload cancelled")


class ChunkedUploadSession:
    """State machine for one resumable upload plus readiness polling.

    Not safe for concurrent use: the caller owns the session and drives it
    from a single task.
    """

    def __init__(
        self,
        service: IRemoteFileService,
        asset: MediaAsset,
        chunk_size: int | None = DEFAULT_CHUNK_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        on_progress: UploadProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        """Create a session.

        Args:
            service: Remote endpoint.
            asset: File to upload.
            chunk_size: Bytes per chunk. None sends the whole file as a single
                finalizing chunk.
            poll_interval: Seconds between status checks.
            max_poll_attempts: Status checks before giving up.
            on_progress: Receives UploadProgress events.
            cancel_token: Checked before every chunk, sleep and status check.
        """
        if chunk_size is not None and chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if poll_interval < 0:
            raise ValueError("poll_interval must be non-negative")
        if max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1")

        self._service = service
        self.asset = asset
        self._chunk_size = chunk_size or max(asset.size, 1)
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._on_progress = on_progress
        self._cancel_token = cancel_token or CancellationToken()

        self._session = UploadSession(
            total_bytes=asset.size,
            remote_mime_type=asset.mime_type,
        )
        self._handle: RemoteFileHandle | None = None
        self._send_lock = asyncio.Lock()
        self._last_percent = 0

    @property
    def session(self) -> UploadSession:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def bytes_sent(self) -> int:
        return self._session.bytes_sent

    @property
    def handle(self) -> RemoteFileHandle | None:
        return self._handle

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def cancel(self) -> None:
        """Stop at the next checkpoint."""
        self._cancel_token.cancel()

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    async def start(self) -> str:
        """Negotiate the upload target.

        Returns:
            The opaque upload URL.

        Raises:
            SessionStartError: If negotiation fails.
        """
        if self._session.state != SessionState.IDLE:
            raise RuntimeError(f"Session already started (state={self._session.state.value})")
        if self.asset.size == 0:
            raise ValueError("Cannot upload an empty file")

        self._cancel_token.raise_if_cancelled()
        self._emit(UploadStage.STARTING, 0, "Starting upload...")

        logger.info(
            "Starting upload: %s %d bytes %s",
            self.asset.name,
            self.asset.size,
            self.asset.mime_type,
        )
        upload_url = await self._service.start_upload(
            self.asset.name, self.asset.size, self.asset.mime_type
        )
        self._cancel_token.raise_if_cancelled()

        self._session.upload_url = upload_url
        self._session.state = SessionState.STARTED
        return upload_url

    async def send_chunk(self, offset: int, data: bytes | memoryview, is_last: bool) -> ChunkAck:
        """Transfer one chunk at ``offset``.

        Raises:
            ChunkUploadError: If the remote service rejects the chunk.
            ValueError: If the chunk is out of order or mis-tagged.
        """
        if self._session.state not in (SessionState.STARTED, SessionState.UPLOADING):
            raise RuntimeError(f"Cannot send chunks in state {self._session.state.value}")
        if self._send_lock.locked():
            raise RuntimeError("A chunk transfer is already in flight for this session")

        async with self._send_lock:
            length = len(data)
            end = offset + length
            total = self._session.total_bytes

            if offset != self._session.bytes_sent:
                raise ValueError(
                    f"Chunk offset {offset} does not match bytes sent {self._session.bytes_sent}"
                )
            if length == 0 or end > total:
                raise ValueError(f"Invalid chunk length {length} at offset {offset}")
            if is_last != (end == total):
                raise ValueError("Only the chunk that ends the file may finalize the upload")

            previous_state = self._session.state
            self._session.state = SessionState.FINALIZING if is_last else SessionState.UPLOADING

            logger.info("Uploading chunk: offset=%d, size=%d, isLast=%s", offset, length, is_last)
            try:
                file_info = await self._service.upload_chunk(
                    self._session.upload_url, offset, bytes(data), finalize=is_last
                )
            except ChunkUploadError:
                self._session.state = previous_state
                raise

            handle = None
            if is_last:
                try:
                    handle = RemoteFileHandle.model_validate(file_info)
                except ValidationError as e:
                    self._session.state = previous_state
                    raise ChunkUploadError(
                        "Finalize response does not describe the uploaded file",
                        offset,
                        details=e.errors(include_url=False),
                    ) from e

            self._session.bytes_sent = end
            self._emit(
                UploadStage.UPLOADING,
                UPLOAD_BAND * end // total,
                f"Uploading video... {end}/{total} bytes",
            )

            if handle is None:
                return ChunkAck(offset=offset, length=length, bytes_sent=end)

            if not handle.mime_type:
                handle = handle.model_copy(update={"mime_type": self.asset.mime_type})
            self._adopt(handle)
            logger.info("Upload complete: %s (%s)", handle.uri, handle.state.value)
            return ChunkAck(
                offset=offset,
                length=length,
                bytes_sent=end,
                finalized=True,
                file=handle,
            )

    async def upload(self) -> RemoteFileHandle:
        """Send all remaining chunks, starting the session if needed.

        Returns:
            The remote file handle from the finalize acknowledgment.
        """
        if self._session.state == SessionState.IDLE:
            await self.start()
        if self._handle is not None:
            return self._handle

        total = self._session.total_bytes
        while self._session.bytes_sent < total:
            self._cancel_token.raise_if_cancelled()
            offset = self._session.bytes_sent
            length = min(self._chunk_size, total - offset)
            await self.send_chunk(
                offset,
                self.asset.slice(offset, length),
                is_last=offset + length == total,
            )

        if self._handle is None:
            raise RuntimeError("Upload finished without a finalize acknowledgment")
        return self._handle

    async def poll_until_active(self) -> RemoteFileHandle:
        """Wait until the uploaded file is ACTIVE.

        Every status check, successful or not, consumes one attempt.

        Raises:
            RemoteProcessingFailedError: If the remote service reports FAILED.
            ProcessingTimeoutError: If the file is still processing after
                ``max_poll_attempts`` checks.
        """
        if self._handle is None:
            raise RuntimeError("Upload has not been finalized")

        handle = self._handle
        attempts = 0
        while True:
            if handle.state == RemoteFileState.ACTIVE:
                self._emit(UploadStage.ACTIVE, 100, "Video ready for analysis")
                return handle
            if handle.state == RemoteFileState.FAILED:
                raise RemoteProcessingFailedError(
                    f"File processing failed. State: {handle.state.value}",
                    file_name=handle.name,
                )
            if attempts >= self._max_poll_attempts:
                raise ProcessingTimeoutError(
                    f"File processing timed out after {attempts} attempts. "
                    f"State: {handle.state.value}",
                    last_state=handle.state.value,
                    attempts=attempts,
                )

            self._cancel_token.raise_if_cancelled()
            await asyncio.sleep(self._poll_interval)
            self._cancel_token.raise_if_cancelled()

            attempts += 1
            try:
                status = await self._service.get_file(handle.name)
                if not isinstance(status, dict):
                    raise RemoteStatusError(
                        f"Unexpected status response for {handle.name}", details=status
                    )
            except RemoteStatusError as e:
                logger.warning(
                    "Status check failed (attempt %d/%d): %s",
                    attempts,
                    self._max_poll_attempts,
                    e,
                )
            else:
                self._cancel_token.raise_if_cancelled()
                handle = handle.with_status(status)
                self._adopt(handle)
                logger.info(
                    "File state: %s attempt: %d",
                    handle.state.value,
                    attempts,
                )

            span = POLL_BAND_END - POLL_BAND_START
            self._emit(
                UploadStage.PROCESSING,
                POLL_BAND_START + span * attempts // self._max_poll_attempts,
                "Processing video...",
            )

    async def run(self) -> RemoteFileHandle:
        """Start, upload every chunk and wait for the file to become ACTIVE."""
        await self.upload()
        return await self.poll_until_active()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _adopt(self, handle: RemoteFileHandle) -> None:
        self._handle = handle
        self._session.remote_file_name = handle.name
        self._session.remote_file_uri = handle.uri or None
        self._session.remote_mime_type = handle.mime_type or self._session.remote_mime_type
        if handle.state == RemoteFileState.ACTIVE:
            self._session.state = SessionState.ACTIVE
        elif handle.state == RemoteFileState.FAILED:
            self._session.state = SessionState.FAILED
        else:
            self._session.state = SessionState.PROCESSING

    def _emit(self, stage: UploadStage, percent: int, message: str) -> None:
        percent = max(self._last_percent, min(percent, 100))
        self._last_percent = percent
        if self._on_progress is not None:
            self._on_progress(UploadProgress(stage=stage, percent=percent, message=message))
