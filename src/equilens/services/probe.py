"""Video metadata probing using ffprobe."""

import asyncio
import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any

from equilens.errors import UnreadableMediaError
from equilens.models.media import MediaAsset, VideoMetadata

logger = logging.getLogger(__name__)


class VideoProbe:
    """Read width, height and duration from container headers.

    ffprobe only parses headers and stream metadata, so the frames are never
    decoded.
    """

    def __init__(self, ffprobe_path: str = "ffprobe") -> None:
        self._ffprobe = ffprobe_path

    async def probe(self, asset: MediaAsset) -> VideoMetadata:
        """Probe an in-memory asset.

        The bytes are spilled to a temporary file for ffprobe; the file is
        removed whether probing succeeds or not.

        Raises:
            UnreadableMediaError: If the headers cannot be parsed.
        """
        fd, tmp_name = tempfile.mkstemp(prefix="probe_", suffix=asset.extension)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(asset.data)
            metadata = await self.probe_path(tmp_path)
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.info(
            "Probed %s: %s, %.1fs, %.1fMB",
            asset.name,
            metadata.resolution,
            metadata.duration_seconds,
            asset.size_mb,
        )
        return metadata

    async def probe_path(self, path: Path) -> VideoMetadata:
        """Probe a file that already exists on disk."""
        cmd = [
            self._ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]

        try:
            result = await asyncio.to_thread(
                subprocess.run, cmd, capture_output=True, text=True
            )
        except FileNotFoundError as e:
            raise UnreadableMediaError(f"ffprobe not found: {self._ffprobe}") from e

        if result.returncode != 0:
            raise UnreadableMediaError(
                f"Failed to load video metadata: {result.stderr.strip() or 'ffprobe error'}",
                details={"path": str(path), "returncode": result.returncode},
            )

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise UnreadableMediaError(f"ffprobe returned invalid JSON: {e}") from e

        return parse_ffprobe_output(data)


def parse_ffprobe_output(data: dict[str, Any]) -> VideoMetadata:
    """Build VideoMetadata from ffprobe's JSON document.

    Raises:
        UnreadableMediaError: If there is no video stream with dimensions.
    """
    video_stream = next(
        (
            s
            for s in data.get("streams", [])
            if s.get("codec_type") == "video" and s.get("width") and s.get("height")
        ),
        None,
    )
    if video_stream is None:
        raise UnreadableMediaError("No video stream with frame dimensions found")

    duration = _parse_duration(data.get("format", {}).get("duration"))
    if duration is None:
        duration = _parse_duration(video_stream.get("duration")) or 0.0

    return VideoMetadata(
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
        duration_seconds=duration,
    )


def _parse_duration(value: Any) -> float | None:
    # ffprobe reports "N/A" for streams without a known duration
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
