"""Services module for EquiLens."""

from equilens.services.analysis import AnalysisRequestDriver
from equilens.services.engine import FFmpegEngine
from equilens.services.gemini_client import GeminiFileService
from equilens.services.interfaces import IMediaEngine, IRemoteFileService
from equilens.services.pipeline import AnalysisPipeline, PipelineOutcome
from equilens.services.probe import VideoProbe
from equilens.services.transcode_policy import TranscodeDecisionPolicy
from equilens.services.transcoder import Transcoder, VideoCompressor
from equilens.services.upload_session import CancellationToken, ChunkedUploadSession

__all__ = [
    "IMediaEngine",
    "IRemoteFileService",
    "VideoProbe",
    "TranscodeDecisionPolicy",
    "FFmpegEngine",
    "Transcoder",
    "VideoCompressor",
    "GeminiFileService",
    "CancellationToken",
    "ChunkedUploadSession",
    "AnalysisRequestDriver",
    "AnalysisPipeline",
    "PipelineOutcome",
]
