"""Resumable upload session models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionState(str, Enum):
    """Lifecycle of a chunked upload session."""

    IDLE = "idle"
    STARTED = "started"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    PROCESSING = "processing"
    ACTIVE = "active"
    FAILED = "failed"


class RemoteFileState(str, Enum):
    """Readiness of a file stored by the remote service (wire values)."""

    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RemoteFileState.ACTIVE, RemoteFileState.FAILED)


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def parse_remote_state(value: Any) -> RemoteFileState:
    """Map a wire state string to RemoteFileState; unknown values are unspecified."""
    if isinstance(value, RemoteFileState):
        return value
    try:
        return RemoteFileState(str(value).upper())
    except ValueError:
        return RemoteFileState.STATE_UNSPECIFIED


class RemoteFileHandle(BaseModel):
    """Reference to an uploaded file on the remote service."""

    model_config = ConfigDict(populate_by_name=True)

    uri: str = ""
    name: str
    mime_type: str = Field("", alias="mimeType")
    state: RemoteFileState = RemoteFileState.PROCESSING

    @field_validator("state", mode="before")
    @classmethod
    def _coerce_state(cls, value: Any) -> RemoteFileState:
        return parse_remote_state(value)

    def with_status(self, data: dict[str, Any]) -> "RemoteFileHandle":
        """Return a copy updated from a status response, keeping known fields."""
        return self.model_copy(
            update={
                "state": parse_remote_state(data.get("state")),
                "uri": _text(data.get("uri")) or self.uri,
                "mime_type": _text(data.get("mimeType")) or self.mime_type,
            }
        )


class UploadSession(BaseModel):
    """Mutable state of one in-flight upload."""

    upload_url: str | None = None
    total_bytes: int = Field(..., ge=0)
    bytes_sent: int = Field(0, ge=0)
    remote_file_name: str | None = None
    remote_file_uri: str | None = None
    remote_mime_type: str
    state: SessionState = SessionState.IDLE

    @property
    def remaining_bytes(self) -> int:
        return self.total_bytes - self.bytes_sent


class ChunkAck(BaseModel):
    """Acknowledgment of one chunk transfer."""

    offset: int
    length: int
    bytes_sent: int
    finalized: bool = False
    file: RemoteFileHandle | None = None
