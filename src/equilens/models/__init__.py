"""Data models for EquiLens."""

from equilens.models.analysis import AnalysisResult, Jump, Phase
from equilens.models.media import CompressionStats, MediaAsset, VideoMetadata
from equilens.models.progress import (
    CompressionProgress,
    CompressionStage,
    UploadProgress,
    UploadStage,
)
from equilens.models.transcode import TranscodeAction, TranscodeVerdict
from equilens.models.upload import (
    ChunkAck,
    RemoteFileHandle,
    RemoteFileState,
    SessionState,
    UploadSession,
)

__all__ = [
    # Media
    "MediaAsset",
    "VideoMetadata",
    "CompressionStats",
    # Transcode
    "TranscodeAction",
    "TranscodeVerdict",
    # Progress
    "CompressionProgress",
    "CompressionStage",
    "UploadProgress",
    "UploadStage",
    # Upload
    "ChunkAck",
    "RemoteFileHandle",
    "RemoteFileState",
    "SessionState",
    "UploadSession",
    # Analysis
    "AnalysisResult",
    "Jump",
    "Phase",
]
