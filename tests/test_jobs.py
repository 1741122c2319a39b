"""Tests for the background job manager."""

import asyncio
import json

import pytest

from equilens.errors import MalformedResultError
from equilens.jobs.manager import JobManager
from equilens.jobs.models import JobStatus
from equilens.models.analysis import AnalysisResult
from equilens.models.upload import RemoteFileHandle, RemoteFileState
from equilens.services.pipeline import PipelineOutcome


def _outcome(asset, analysis_payload) -> PipelineOutcome:
    return PipelineOutcome(
        result=AnalysisResult.model_validate(analysis_payload),
        remote_file=RemoteFileHandle(name="files/abc", uri="u", state=RemoteFileState.ACTIVE),
        uploaded=asset,
    )


class TestJobManager:
    @pytest.mark.asyncio
    async def test_completed_job(self, tmp_path, analysis_payload) -> None:
        video = tmp_path / "ride.mp4"
        video.write_bytes(b"video-bytes")
        seen = []

        async def runner(asset, compress, progress_callback):
            seen.append((asset.name, asset.data, compress))
            progress_callback(0.5, "Uploading video...")
            return _outcome(asset, analysis_payload)

        mgr = JobManager(runner)
        job = mgr.create_job(video, compress=False)
        assert job.status == JobStatus.PENDING
        await mgr.wait_all()

        assert job.status == JobStatus.COMPLETED
        assert job.progress_percent == 100
        assert job.result.jump_count == 1
        assert job.summary == {"jumps": 1, "remote_file": "files/abc", "compressed": False}
        assert job.completed_at is not None
        assert seen == [("ride.mp4", b"video-bytes", False)]
        assert not video.exists()

    @pytest.mark.asyncio
    async def test_failed_job(self, tmp_path) -> None:
        video = tmp_path / "ride.mp4"
        video.write_bytes(b"x")

        async def runner(asset, compress, progress_callback):
            progress_callback(0.9, "Analyzing video...")
            raise MalformedResultError("Invalid response structure from analysis: 1 error(s)")

        mgr = JobManager(runner)
        job = mgr.create_job(video)
        await mgr.wait_all()

        assert job.status == JobStatus.FAILED
        assert job.error_type == "MalformedResultError"
        assert job.progress_percent == 90
        assert job.result is None
        assert not video.exists()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path) -> None:
        async def runner(asset, compress, progress_callback):
            raise AssertionError("runner must not be called")

        mgr = JobManager(runner)
        job = mgr.create_job(tmp_path / "missing.mp4")
        await mgr.wait_all()
        assert job.status == JobStatus.FAILED
        assert job.error_type == "FileNotFoundError"

    @pytest.mark.asyncio
    async def test_concurrency_limit(self, tmp_path, analysis_payload) -> None:
        videos = [tmp_path / f"ride_{i}.mp4" for i in range(5)]
        for video in videos:
            video.write_bytes(b"x")
        running = 0
        peak = 0

        async def runner(asset, compress, progress_callback):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return _outcome(asset, analysis_payload)

        mgr = JobManager(runner, max_concurrent=2)
        jobs = [mgr.create_job(video) for video in videos]
        await mgr.wait_all()

        assert peak == 2
        assert all(j.status == JobStatus.COMPLETED for j in jobs)
        assert len(mgr.list_jobs()) == 5
        assert mgr.get_job(jobs[0].id) is jobs[0]
        assert mgr.get_job("nope") is None
