"""Media-related data models."""

import mimetypes
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_VIDEO_MIME = "video/mp4"


class MediaAsset(BaseModel):
    """Immutable in-memory media file.

    The bytes are owned by the caller; services only read slices.
    """

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., repr=False, description="Raw file bytes")
    mime_type: str = Field(DEFAULT_VIDEO_MIME, description="Declared MIME type")
    name: str = Field(..., description="Original file name")

    @property
    def size(self) -> int:
        """Return byte length."""
        return len(self.data)

    @property
    def size_mb(self) -> float:
        """Return size in megabytes (10^6 bytes)."""
        return self.size / 1_000_000

    @property
    def extension(self) -> str:
        """Return lower-case extension including the dot, '.mp4' if none."""
        suffix = Path(self.name).suffix.lower()
        return suffix or ".mp4"

    def slice(self, offset: int, length: int) -> memoryview:
        """Return a read-only view of ``length`` bytes starting at ``offset``."""
        if offset < 0 or length < 0:
            raise ValueError("offset and length must be non-negative")
        return memoryview(self.data)[offset : offset + length]

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> "MediaAsset":
        """Load a file from disk."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if mime_type is None:
            guessed, _ = mimetypes.guess_type(path.name)
            mime_type = guessed or DEFAULT_VIDEO_MIME
        return cls(data=path.read_bytes(), mime_type=mime_type, name=path.name)


class VideoMetadata(BaseModel):
    """Video dimensions and duration obtained from container headers."""

    width: int = Field(..., gt=0, description="Frame width in pixels")
    height: int = Field(..., gt=0, description="Frame height in pixels")
    duration_seconds: float = Field(..., ge=0.0, description="Duration in seconds")

    @property
    def resolution(self) -> str:
        """Return resolution string (e.g., '1920x1080')."""
        return f"{self.width}x{self.height}"


class CompressionStats(BaseModel):
    """Size comparison between the original and compressed asset."""

    original_mb: float
    compressed_mb: float
    reduction_percent: int

    @classmethod
    def between(cls, original: MediaAsset, compressed: MediaAsset) -> "CompressionStats":
        """Compute stats for an original/compressed pair."""
        if original.size == 0:
            reduction = 0
        else:
            reduction = round((original.size - compressed.size) / original.size * 100)
        return cls(
            original_mb=round(original.size / 1024 / 1024, 1),
            compressed_mb=round(compressed.size / 1024 / 1024, 1),
            reduction_percent=reduction,
        )
