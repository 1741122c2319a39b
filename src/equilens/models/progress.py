"""Progress reporting value objects."""

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field


class CompressionStage(str, Enum):
    LOADING = "loading"
    COMPRESSING = "compressing"
    DONE = "done"
    SKIPPED = "skipped"
    ERROR = "error"


class UploadStage(str, Enum):
    STARTING = "starting"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    ACTIVE = "active"


class CompressionProgress(BaseModel):
    """Progress event emitted while preparing a video."""

    stage: CompressionStage
    percent: int = Field(..., ge=0, le=100)
    message: str = ""


class UploadProgress(BaseModel):
    """Progress event emitted by an upload session."""

    stage: UploadStage
    percent: int = Field(..., ge=0, le=100)
    message: str = ""


CompressionProgressCallback = Callable[[CompressionProgress], None]
UploadProgressCallback = Callable[[UploadProgress], None]
