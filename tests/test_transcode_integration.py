"""End-to-end compression against a real ffmpeg binary."""

import shutil
import subprocess

import pytest

from equilens.models.media import MediaAsset
from equilens.services.engine import FFmpegEngine
from equilens.services.probe import VideoProbe
from equilens.services.transcode_policy import TranscodeDecisionPolicy
from equilens.services.transcoder import Transcoder, VideoCompressor

pytestmark = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg/ffprobe not installed",
)


def _make_clip(path, size: str, seconds: int, bitrate: str) -> None:
    cmd = [
        "ffmpeg", "-y", "-hide_banner", "-loglevel", "error",
        "-f", "lavfi", "-i", f"testsrc2=size={size}:rate=30:duration={seconds}",
        "-f", "lavfi", "-i", f"sine=frequency=440:duration={seconds}",
        "-c:v", "libx264", "-preset", "ultrafast", "-b:v", bitrate,
        "-c:a", "aac", "-shortest",
        str(path),
    ]
    subprocess.run(cmd, check=True, capture_output=True)


class TestRealCompression:
    @pytest.mark.asyncio
    async def test_high_resolution_clip(self, tmp_path) -> None:
        source = tmp_path / "ride.mp4"
        _make_clip(source, "1920x1080", 4, "8M")
        asset = MediaAsset.from_path(source)

        async with FFmpegEngine() as engine:
            compressor = VideoCompressor(VideoProbe(), TranscodeDecisionPolicy(), Transcoder(engine))
            events = []
            result = await compressor.prepare(asset, on_progress=events.append)

        assert result is not asset
        assert result.size < asset.size
        metadata = await VideoProbe().probe(result)
        assert metadata.height <= 480
        percents = [e.percent for e in events if e.stage.value == "compressing"]
        assert percents == sorted(percents)

    @pytest.mark.asyncio
    async def test_small_clip_passes_through(self, tmp_path) -> None:
        source = tmp_path / "small.mp4"
        _make_clip(source, "640x360", 2, "200k")
        asset = MediaAsset.from_path(source)

        async with FFmpegEngine() as engine:
            compressor = VideoCompressor(VideoProbe(), TranscodeDecisionPolicy(), Transcoder(engine))
            result = await compressor.prepare(asset)

        assert result is asset
        assert result.data == source.read_bytes()
