"""Decide whether a video is compressed before upload."""

import logging

from equilens.models.media import VideoMetadata
from equilens.models.transcode import TranscodeAction, TranscodeVerdict

logger = logging.getLogger(__name__)

DEFAULT_HEIGHT_THRESHOLD = 480
# 3MB stays under a 4.5MB request ceiling once base64 inflates it by 4/3
DEFAULT_SIZE_THRESHOLD_MB = 3.0


class TranscodeDecisionPolicy:
    """Pure compress/skip decision from probe results and file size."""

    def __init__(
        self,
        height_threshold: int = DEFAULT_HEIGHT_THRESHOLD,
        size_threshold_mb: float = DEFAULT_SIZE_THRESHOLD_MB,
    ) -> None:
        if height_threshold <= 0:
            raise ValueError("height_threshold must be positive")
        if size_threshold_mb <= 0:
            raise ValueError("size_threshold_mb must be positive")
        self.height_threshold = height_threshold
        self.size_threshold_mb = size_threshold_mb

    def decide(self, metadata: VideoMetadata, size_bytes: int) -> TranscodeVerdict:
        """Return COMPRESS if the video is taller or larger than the thresholds."""
        size_mb = size_bytes / 1_000_000
        is_high_resolution = metadata.height > self.height_threshold
        is_oversized = size_mb > self.size_threshold_mb

        action = (
            TranscodeAction.COMPRESS
            if is_high_resolution or is_oversized
            else TranscodeAction.SKIP
        )
        logger.debug(
            "Verdict %s: %dp (limit %dp), %.1fMB (limit %.1fMB)",
            action.value,
            metadata.height,
            self.height_threshold,
            size_mb,
            self.size_threshold_mb,
        )
        return TranscodeVerdict(
            action=action,
            is_high_resolution=is_high_resolution,
            is_oversized=is_oversized,
            height=metadata.height,
            size_mb=size_mb,
        )

    @staticmethod
    def max_input_bytes(transport_ceiling_bytes: int) -> int:
        """Largest raw input whose base64 encoding fits the transport ceiling."""
        return transport_ceiling_bytes * 3 // 4
