"""Request and response schemas for the EquiLens API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from equilens.models.analysis import AnalysisResult


# ------------------------------------------------------------------
# Upload proxy
# ------------------------------------------------------------------


class UploadStartRequest(BaseModel):
    file_name: str = Field(..., min_length=1, description="Display name of the file")
    file_size: int = Field(..., gt=0, description="Total size in bytes")
    mime_type: str = Field(..., min_length=1, description="MIME type of the file")


class UploadStartResponse(BaseModel):
    upload_url: str


class ChunkUploadResponse(BaseModel):
    complete: bool
    uploaded_bytes: int
    file_uri: str | None = None
    file_name: str | None = None
    mime_type: str | None = None
    state: str | None = None


class FileStatusRequest(BaseModel):
    file_name: str = Field(..., min_length=1, description="Remote file name (files/<id>)")


class FileStatusResponse(BaseModel):
    state: str
    file_uri: str | None = None
    mime_type: str | None = None


class AnalyzeRequest(BaseModel):
    file_uri: str = Field(..., min_length=1, description="URI of an ACTIVE remote file")
    mime_type: str = Field(..., min_length=1, description="MIME type of the remote file")
    file_name: str = Field("", description="Remote file name, for logging")


# ------------------------------------------------------------------
# Job responses
# ------------------------------------------------------------------


class JobCreateResponse(BaseModel):
    job_id: str
    status: str


class JobListItem(BaseModel):
    job_id: str
    status: str
    file_name: str
    created_at: datetime


class JobStatusResponse(BaseModel):
    job_id: str
    status: str
    progress: int
    message: str
    result: AnalysisResult | None = None
    summary: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    error_type: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class ErrorResponse(BaseModel):
    error: str
    type: str
    details: Any = None
