"""Background analysis job endpoints."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from equilens.api.deps import get_job_manager
from equilens.api.schemas import JobCreateResponse, JobListItem, JobStatusResponse
from equilens.config import settings
from equilens.jobs.manager import JobManager
from equilens.jobs.models import Job

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"])


def _save_upload(video: UploadFile) -> Path:
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    name = Path(video.filename or "video.mp4").name
    dest = settings.upload_dir / f"{uuid4().hex[:12]}_{name}"
    with dest.open("wb") as out:
        shutil.copyfileobj(video.file, out)
    return dest


def _status_response(job: Job) -> JobStatusResponse:
    return JobStatusResponse(
        job_id=job.id,
        status=job.status.value,
        progress=job.progress_percent,
        message=job.progress_message,
        result=job.result,
        summary=job.summary,
        error=job.error_message,
        error_type=job.error_type,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


@router.post("", response_model=JobCreateResponse, status_code=202)
async def create_job(
    video: UploadFile = File(..., description="Video to analyze"),
    compress: bool = Form(True),
    mgr: JobManager = Depends(get_job_manager),
) -> JobCreateResponse:
    if video.content_type and not video.content_type.startswith("video/"):
        raise HTTPException(status_code=422, detail=f"Expected a video, got {video.content_type}")
    path = _save_upload(video)
    logger.info("Saved upload %s (%s)", path, video.content_type)
    job = mgr.create_job(path, compress=compress)
    return JobCreateResponse(job_id=job.id, status=job.status.value)


@router.get("", response_model=list[JobListItem])
async def list_jobs(
    mgr: JobManager = Depends(get_job_manager),
) -> list[JobListItem]:
    return [
        JobListItem(
            job_id=j.id,
            status=j.status.value,
            file_name=j.video_path.name,
            created_at=j.created_at,
        )
        for j in mgr.list_jobs()
    ]


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job(
    job_id: str,
    mgr: JobManager = Depends(get_job_manager),
) -> JobStatusResponse:
    job = mgr.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return _status_response(job)
