"""Video compression: transcode with progress, and the probe/decide/transcode flow."""

import logging
from pathlib import Path
from uuid import uuid4

from equilens.errors import EquiLensError
from equilens.models.media import MediaAsset
from equilens.models.progress import (
    CompressionProgress,
    CompressionProgressCallback,
    CompressionStage,
)
from equilens.services.interfaces import IMediaEngine
from equilens.services.probe import VideoProbe
from equilens.services.transcode_policy import TranscodeDecisionPolicy

logger = logging.getLogger(__name__)

OUTPUT_MIME = "video/mp4"


def _noop(_: CompressionProgress) -> None:
    pass


def compressed_name(name: str) -> str:
    """Return 'clip_compressed.mp4' for 'clip.mov'."""
    stem = Path(name).stem or "video"
    return f"{stem}_compressed.mp4"


class Transcoder:
    """Scale and re-encode a video to H.264/AAC MP4 with faststart."""

    def __init__(
        self,
        engine: IMediaEngine,
        crf: int = 28,
        preset: str = "ultrafast",
        audio_bitrate: str = "128k",
    ) -> None:
        self._engine = engine
        self._crf = crf
        self._preset = preset
        self._audio_bitrate = audio_bitrate

    def build_args(self, input_name: str, output_name: str, target_height: int) -> list[str]:
        """ffmpeg arguments for the fixed compression profile."""
        return [
            "-i", input_name,
            # -2 keeps the aspect ratio with an even width
            "-vf", f"scale=-2:{target_height}",
            "-c:v", "libx264",
            "-preset", self._preset,
            "-crf", str(self._crf),
            "-c:a", "aac",
            "-b:a", self._audio_bitrate,
            "-movflags", "+faststart",
            output_name,
        ]

    async def transcode(
        self,
        asset: MediaAsset,
        target_height: int,
        on_progress: CompressionProgressCallback | None = None,
        duration_seconds: float | None = None,
    ) -> MediaAsset:
        """Transcode ``asset`` down to ``target_height``.

        Args:
            asset: Source video.
            target_height: Output frame height; rounded down to an even number.
            on_progress: Receives loading, compressing and done events.
            duration_seconds: Source duration, used to turn encoder time into
                a percentage. Without it only the final 100% is reported.

        Returns:
            A new MP4 asset.

        Raises:
            EngineLoadError: If the engine cannot be initialized.
            TranscodeError: If encoding fails.
        """
        target_height -= target_height % 2
        if target_height <= 0:
            raise ValueError("target_height must be at least 2")

        report = on_progress or _noop

        report(CompressionProgress(
            stage=CompressionStage.LOADING, percent=0, message="Loading video processor...",
        ))
        await self._engine.load()
        report(CompressionProgress(
            stage=CompressionStage.LOADING, percent=100, message="Video processor ready",
        ))

        token = uuid4().hex[:12]
        input_name = f"input_{token}{asset.extension}"
        output_name = f"output_{token}.mp4"

        report(CompressionProgress(
            stage=CompressionStage.COMPRESSING, percent=0, message="Preparing video...",
        ))

        last_percent = 0

        def on_ratio(ratio: float) -> None:
            nonlocal last_percent
            percent = min(100, max(0, round(ratio * 100)))
            if percent > last_percent:
                last_percent = percent
                report(CompressionProgress(
                    stage=CompressionStage.COMPRESSING,
                    percent=percent,
                    message=f"Compressing: {percent}%",
                ))

        try:
            await self._engine.write_file(input_name, asset.data)
            await self._engine.exec(
                self.build_args(input_name, output_name, target_height),
                on_ratio=on_ratio,
                duration_seconds=duration_seconds,
            )
            data = await self._engine.read_file(output_name)
        except EquiLensError as e:
            report(CompressionProgress(
                stage=CompressionStage.ERROR, percent=last_percent, message=e.message,
            ))
            raise
        finally:
            await self._engine.delete_file(input_name)
            await self._engine.delete_file(output_name)

        report(CompressionProgress(
            stage=CompressionStage.DONE, percent=100, message="Compression complete",
        ))

        compressed = MediaAsset(
            data=data, mime_type=OUTPUT_MIME, name=compressed_name(asset.name)
        )
        logger.info(
            "Compressed %s: %.1fMB -> %.1fMB",
            asset.name,
            asset.size / 1024 / 1024,
            compressed.size / 1024 / 1024,
        )
        return compressed


class VideoCompressor:
    """Probe a video, decide, and transcode only when the policy says so."""

    def __init__(
        self,
        probe: VideoProbe,
        policy: TranscodeDecisionPolicy,
        transcoder: Transcoder,
    ) -> None:
        self._probe = probe
        self._policy = policy
        self._transcoder = transcoder

    async def prepare(
        self,
        asset: MediaAsset,
        on_progress: CompressionProgressCallback | None = None,
    ) -> MediaAsset:
        """Return a compressed copy of ``asset``, or ``asset`` itself if skipped.

        Raises:
            UnreadableMediaError: If the video cannot be probed.
            EngineLoadError: If compression is needed but ffmpeg is unavailable.
            TranscodeError: If compression fails.
        """
        report = on_progress or _noop
        report(CompressionProgress(
            stage=CompressionStage.LOADING, percent=0, message="Checking video...",
        ))

        metadata = await self._probe.probe(asset)
        verdict = self._policy.decide(metadata, asset.size)

        if not verdict.should_compress:
            logger.info(
                "Skipping compression: %dp <= %dp and %.1fMB <= %.1fMB",
                metadata.height,
                self._policy.height_threshold,
                verdict.size_mb,
                self._policy.size_threshold_mb,
            )
            report(CompressionProgress(
                stage=CompressionStage.SKIPPED,
                percent=100,
                message=f"Video already optimized ({metadata.height}p, {verdict.size_mb:.1f}MB)",
            ))
            return asset

        logger.info(
            "Compressing: %dp > %dp or %.1fMB > %.1fMB",
            metadata.height,
            self._policy.height_threshold,
            verdict.size_mb,
            self._policy.size_threshold_mb,
        )
        return await self._transcoder.transcode(
            asset,
            # never upscale a video that is only oversized
            target_height=min(self._policy.height_threshold, metadata.height),
            on_progress=on_progress,
            duration_seconds=metadata.duration_seconds,
        )
