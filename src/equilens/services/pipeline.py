"""End-to-end analysis flow: compress, upload, analyze."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from equilens.config import Settings
from equilens.models.analysis import AnalysisResult
from equilens.models.media import CompressionStats, MediaAsset
from equilens.models.progress import CompressionProgress, CompressionStage, UploadProgress
from equilens.models.upload import RemoteFileHandle
from equilens.services.analysis import AnalysisRequestDriver
from equilens.services.engine import FFmpegEngine
from equilens.services.interfaces import IRemoteFileService
from equilens.services.probe import VideoProbe
from equilens.services.transcode_policy import TranscodeDecisionPolicy
from equilens.services.transcoder import Transcoder, VideoCompressor
from equilens.services.upload_session import CancellationToken, ChunkedUploadSession

logger = logging.getLogger(__name__)

# Progress callback type: (progress: float 0-1, message: str) -> None
ProgressCallback = Callable[[float, str], None]

# stage: (start_progress, end_progress)
STAGE_PROGRESS: dict[str, tuple[float, float]] = {
    "loading": (0.0, 0.05),
    "compressing": (0.05, 0.30),
    "uploading": (0.30, 0.80),
    "analyzing": (0.80, 1.0),
}


@dataclass
class PipelineOutcome:
    """Everything produced by one analysis run."""

    result: AnalysisResult
    remote_file: RemoteFileHandle
    uploaded: MediaAsset
    stats: CompressionStats | None = None

    @property
    def compressed(self) -> bool:
        return self.stats is not None


class _ProgressReporter:
    """Map stage-local percentages onto one non-decreasing 0-1 scale."""

    def __init__(self, callback: ProgressCallback | None) -> None:
        self._callback = callback
        self._last = 0.0

    def stage(self, name: str, percent: float, message: str) -> None:
        start, end = STAGE_PROGRESS[name]
        self.report(start + (end - start) * min(max(percent, 0.0), 100.0) / 100.0, message)

    def report(self, progress: float, message: str) -> None:
        self._last = max(self._last, min(max(progress, 0.0), 1.0))
        if self._callback:
            self._callback(self._last, message)


class AnalysisPipeline:
    """Sequences VideoCompressor -> ChunkedUploadSession -> AnalysisRequestDriver."""

    def __init__(
        self,
        service: IRemoteFileService,
        compressor: VideoCompressor | None = None,
        chunk_size: int | None = 3 * 1024 * 1024,
        poll_interval: float = 1.0,
        max_poll_attempts: int = 60,
    ) -> None:
        """Initialize the pipeline.

        Args:
            service: Remote upload/analysis endpoint.
            compressor: Compression step; None uploads the original file.
            chunk_size: Upload chunk size in bytes.
            poll_interval: Seconds between readiness checks.
            max_poll_attempts: Readiness checks before timing out.
        """
        self._service = service
        self._compressor = compressor
        self._chunk_size = chunk_size
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._driver = AnalysisRequestDriver(service)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        service: IRemoteFileService,
        engine: FFmpegEngine | None = None,
        compress: bool = True,
    ) -> "AnalysisPipeline":
        """Build a pipeline from configuration, sharing ``engine`` if given."""
        compressor = None
        if compress:
            engine = engine or FFmpegEngine(ffmpeg_path=settings.ffmpeg_path)
            compressor = VideoCompressor(
                probe=VideoProbe(ffprobe_path=settings.ffprobe_path),
                policy=TranscodeDecisionPolicy(
                    height_threshold=settings.compress_height_threshold,
                    size_threshold_mb=settings.compress_size_threshold_mb,
                ),
                transcoder=Transcoder(engine),
            )
        return cls(
            service=service,
            compressor=compressor,
            chunk_size=settings.upload_chunk_size_bytes,
            poll_interval=settings.poll_interval_seconds,
            max_poll_attempts=settings.poll_max_attempts,
        )

    async def run(
        self,
        asset: MediaAsset,
        progress_callback: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> PipelineOutcome:
        """Compress (if needed), upload and analyze ``asset``.

        Errors from each step propagate unchanged.
        """
        reporter = _ProgressReporter(progress_callback)

        uploaded = asset
        stats: CompressionStats | None = None
        if self._compressor is not None:

            def on_compression(event: CompressionProgress) -> None:
                if event.stage == CompressionStage.COMPRESSING:
                    reporter.stage("compressing", event.percent, event.message)
                elif event.stage in (CompressionStage.DONE, CompressionStage.SKIPPED):
                    reporter.stage("compressing", 100, event.message)
                elif event.stage == CompressionStage.LOADING:
                    reporter.stage("loading", event.percent, event.message)

            uploaded = await self._compressor.prepare(asset, on_progress=on_compression)
            if uploaded is not asset:
                stats = CompressionStats.between(asset, uploaded)
                logger.info(
                    "Compressed %.1fMB -> %.1fMB (%d%% smaller)",
                    stats.original_mb,
                    stats.compressed_mb,
                    stats.reduction_percent,
                )

        def on_upload(event: UploadProgress) -> None:
            reporter.stage("uploading", event.percent, event.message)

        session = ChunkedUploadSession(
            self._service,
            uploaded,
            chunk_size=self._chunk_size,
            poll_interval=self._poll_interval,
            max_poll_attempts=self._max_poll_attempts,
            on_progress=on_upload,
            cancel_token=cancel_token,
        )
        remote_file = await session.run()

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        reporter.stage("analyzing", 0, "Analyzing video...")
        result = await self._driver.request_analysis(remote_file)
        reporter.stage("analyzing", 100, "Analysis complete")

        return PipelineOutcome(
            result=result,
            remote_file=remote_file,
            uploaded=uploaded,
            stats=stats,
        )
