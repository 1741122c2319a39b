"""Custom exceptions for EquiLens.

Every failure raised by the compression, upload and analysis services is one
of these types, so callers can decide on retries from the attached context
(offset, HTTP status, last remote state) without parsing messages.
"""

from typing import Any


class EquiLensError(Exception):
    """Base exception for EquiLens."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ConfigurationError(EquiLensError):
    """Required configuration is missing or invalid."""

    pass


# --- Media / compression ---


class UnreadableMediaError(EquiLensError):
    """Media headers or metadata could not be parsed."""

    pass


class EngineLoadError(EquiLensError):
    """The media-processing engine could not be initialized."""

    pass


class TranscodeError(EquiLensError):
    """The encode step failed."""

    pass


# --- Resumable upload ---


class SessionStartError(EquiLensError):
    """Upload session negotiation was rejected or returned no upload URL."""

    pass


class ChunkUploadError(EquiLensError):
    """A single chunk transfer failed.

    ``offset`` is the absolute byte offset of the rejected chunk;
    ``status_code`` is None for transport-level failures.
    """

    def __init__(
        self,
        message: str,
        offset: int,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message, status_code=status_code, details=details)
        self.offset = offset


class ProcessingTimeoutError(EquiLensError):
    """The remote file was still processing when the poll budget ran out."""

    def __init__(self, message: str, last_state: str, attempts: int):
        super().__init__(message, details={"last_state": last_state, "attempts": attempts})
        self.last_state = last_state
        self.attempts = attempts


class RemoteProcessingFailedError(EquiLensError):
    """The remote service reported the uploaded file as FAILED."""

    def __init__(self, message: str, file_name: str | None = None, details: Any = None):
        super().__init__(message, details=details)
        self.file_name = file_name


class RemoteStatusError(EquiLensError):
    """A status check against the remote service failed (tolerated while polling)."""

    pass


class UploadCancelledError(EquiLensError):
    """The caller abandoned the upload session."""

    pass


# --- Analysis ---


class AnalysisServiceError(EquiLensError):
    """The analysis endpoint returned a non-success response."""

    pass


class EmptyResponseError(EquiLensError):
    """The analysis endpoint returned no textual payload."""

    pass


class MalformedResultError(EquiLensError):
    """The analysis payload does not match the expected schema."""

    pass
