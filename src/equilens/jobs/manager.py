"""Job manager with in-memory storage and background execution."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from pathlib import Path

from equilens.errors import EquiLensError
from equilens.jobs.models import Job, JobStatus
from equilens.models.media import MediaAsset
from equilens.services.pipeline import PipelineOutcome, ProgressCallback

logger = logging.getLogger(__name__)

# (asset, compress, progress_callback) -> outcome
PipelineRunner = Callable[[MediaAsset, bool, ProgressCallback], Awaitable[PipelineOutcome]]


class JobManager:
    """Manages background analysis jobs with concurrency control.

    Jobs are stored in-memory (dict). Background execution uses
    asyncio.create_task with a semaphore for concurrency limiting.
    """

    def __init__(self, runner: PipelineRunner, max_concurrent: int = 2) -> None:
        self._runner = runner
        self._jobs: dict[str, Job] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._semaphore = asyncio.Semaphore(max_concurrent)

    def create_job(self, video_path: Path, compress: bool = True) -> Job:
        """Create a new job and schedule it for background execution.

        Args:
            video_path: Video stored on local disk. The job takes ownership
                and deletes the file once it finishes.
            compress: Whether the compression step may run.

        Returns:
            The created Job (status=pending).
        """
        job = Job(video_path=Path(video_path), compress=compress)
        self._jobs[job.id] = job
        task = asyncio.create_task(self._run_job(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    def get_job(self, job_id: str) -> Job | None:
        """Get a job by ID."""
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        """List all jobs, most recent first."""
        return sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)

    async def wait_all(self) -> None:
        """Wait for every scheduled job to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run_job(self, job: Job) -> None:
        """Execute a job with semaphore-based concurrency control."""
        async with self._semaphore:
            job.status = JobStatus.PROCESSING
            job.update_progress(0, "Starting...")

            def _progress(progress: float, message: str) -> None:
                job.update_progress(int(progress * 100), message)

            try:
                asset = await asyncio.to_thread(MediaAsset.from_path, job.video_path)
                outcome = await self._runner(asset, job.compress, _progress)
                job.result = outcome.result
                job.summary = {
                    "jumps": outcome.result.jump_count,
                    "remote_file": outcome.remote_file.name,
                    "compressed": outcome.compressed,
                }
                if outcome.stats is not None:
                    job.summary["compression"] = outcome.stats.model_dump()
                job.status = JobStatus.COMPLETED
                job.update_progress(100, "Complete")
            except EquiLensError as e:
                logger.warning("Job %s failed: %s", job.id, e)
                job.status = JobStatus.FAILED
                job.error_message = e.message
                job.error_type = type(e).__name__
                job.progress_message = "Failed"
            except Exception as e:
                logger.exception("Job %s failed", job.id)
                job.status = JobStatus.FAILED
                job.error_message = str(e)
                job.error_type = type(e).__name__
                job.progress_message = "Failed"
            finally:
                now = datetime.now(timezone.utc)
                job.updated_at = now
                job.completed_at = now
                _discard_video(job.video_path)


def _discard_video(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Failed to remove uploaded video %s: %s", path, e)
