"""FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncIterator

from equilens.config import settings
from equilens.jobs.manager import JobManager
from equilens.models.media import MediaAsset
from equilens.services.engine import FFmpegEngine
from equilens.services.gemini_client import GeminiFileService
from equilens.services.interfaces import IRemoteFileService
from equilens.services.pipeline import AnalysisPipeline, PipelineOutcome, ProgressCallback

_job_manager: JobManager | None = None
_engine: FFmpegEngine | None = None


def get_engine() -> FFmpegEngine:
    """Shared transcoding engine; loaded on first use."""
    global _engine
    if _engine is None:
        _engine = FFmpegEngine(ffmpeg_path=settings.ffmpeg_path)
    return _engine


async def close_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.close()
        _engine = None


async def run_analysis(
    asset: MediaAsset,
    compress: bool,
    progress_callback: ProgressCallback,
) -> PipelineOutcome:
    """Run the full pipeline against the configured remote service."""
    async with GeminiFileService.from_settings(settings) as service:
        pipeline = AnalysisPipeline.from_settings(
            settings,
            service,
            engine=get_engine() if compress else None,
            compress=compress,
        )
        return await pipeline.run(asset, progress_callback)


def init_job_manager(max_concurrent: int = 2) -> JobManager:
    """Initialize the global JobManager (called at app startup)."""
    global _job_manager
    _job_manager = JobManager(run_analysis, max_concurrent=max_concurrent)
    return _job_manager


def get_job_manager() -> JobManager:
    """Dependency that provides the JobManager instance."""
    if _job_manager is None:
        raise RuntimeError("JobManager not initialized, call init_job_manager() first")
    return _job_manager


async def get_file_service() -> AsyncIterator[IRemoteFileService]:
    """Dependency that provides a remote file service for one request."""
    async with GeminiFileService.from_settings(settings) as service:
        yield service
