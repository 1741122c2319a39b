"""Resumable upload proxy endpoints.

The client never holds the API key: it negotiates a session here, pushes
chunks through ``/chunk`` and polls ``/status`` until the file is ACTIVE.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from equilens.api.deps import get_file_service
from equilens.api.schemas import (
    ChunkUploadResponse,
    FileStatusRequest,
    FileStatusResponse,
    UploadStartRequest,
    UploadStartResponse,
)
from equilens.config import settings
from equilens.models.upload import parse_remote_state
from equilens.services.gemini_client import is_upload_url
from equilens.services.interfaces import IRemoteFileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/upload", tags=["upload"])


@router.post("/start", response_model=UploadStartResponse)
async def start_upload(
    req: UploadStartRequest,
    service: IRemoteFileService = Depends(get_file_service),
) -> UploadStartResponse:
    logger.info("Starting upload: %s %d bytes %s", req.file_name, req.file_size, req.mime_type)
    upload_url = await service.start_upload(req.file_name, req.file_size, req.mime_type)
    return UploadStartResponse(upload_url=upload_url)


@router.post("/chunk", response_model=ChunkUploadResponse)
async def upload_chunk(
    upload_url: str = Form(...),
    offset: int = Form(..., ge=0),
    total_size: int = Form(..., gt=0),
    is_last: bool = Form(False),
    chunk: UploadFile = File(...),
    service: IRemoteFileService = Depends(get_file_service),
) -> ChunkUploadResponse:
    if not is_upload_url(upload_url, settings.gemini_upload_base):
        raise HTTPException(status_code=422, detail="upload_url does not point at the upload service")

    data = await chunk.read()
    end = offset + len(data)
    if not data or end > total_size:
        raise HTTPException(
            status_code=422,
            detail=f"Chunk [{offset}, {end}) does not fit a {total_size}-byte file",
        )
    if is_last != (end == total_size):
        raise HTTPException(status_code=422, detail="is_last must be set on the final chunk only")

    logger.info("Uploading chunk: offset=%d size=%d is_last=%s", offset, len(data), is_last)
    file_info = await service.upload_chunk(upload_url, offset, data, finalize=is_last)
    if file_info is None:
        return ChunkUploadResponse(complete=False, uploaded_bytes=end)

    return ChunkUploadResponse(
        complete=True,
        uploaded_bytes=end,
        file_uri=file_info.get("uri"),
        file_name=file_info.get("name"),
        mime_type=file_info.get("mimeType"),
        state=parse_remote_state(file_info.get("state")).value,
    )


@router.post("/status", response_model=FileStatusResponse)
async def file_status(
    req: FileStatusRequest,
    service: IRemoteFileService = Depends(get_file_service),
) -> FileStatusResponse:
    data = await service.get_file(req.file_name)
    return FileStatusResponse(
        state=parse_remote_state(data.get("state")).value,
        file_uri=data.get("uri"),
        mime_type=data.get("mimeType"),
    )
