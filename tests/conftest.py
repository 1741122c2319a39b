"""Shared fixtures: in-memory engine, scripted remote service, sample payloads."""

from __future__ import annotations

import copy
from collections.abc import Callable
from typing import Any

import pytest

from equilens.errors import ChunkUploadError, TranscodeError
from equilens.models.media import MediaAsset

VALID_ANALYSIS: dict[str, Any] = {
    "jumps": [
        {
            "jumpNumber": 1,
            "startTime": 0.0,
            "endTime": 5.5,
            "phases": [
                {
                    "startTime": 0.0,
                    "endTime": 1.5,
                    "phaseName": "Approach",
                    "riderAnalysis": "Balanced two-point seat.",
                    "horseAnalysis": "Steady rhythm, engaged hindquarters.",
                    "physicsNote": "Horizontal momentum builds before takeoff.",
                    "score": 8,
                },
                {
                    "startTime": 1.5,
                    "endTime": 2.2,
                    "phaseName": "Takeoff",
                    "riderAnalysis": "Follows the motion with the hands.",
                    "horseAnalysis": "Powerful push from the hind legs.",
                    "physicsNote": "Ground reaction force converts to lift.",
                    "score": 7.5,
                },
            ],
            "overallScore": 7.5,
        }
    ],
    "overallSummary": "Clean round with a confident approach.",
    "suggestedImprovements": ["Soften the release", "Look ahead on landing"],
    "movementName": "Show Jumping",
    "similarProRider": "Scott Brash",
}


@pytest.fixture
def analysis_payload() -> dict[str, Any]:
    return copy.deepcopy(VALID_ANALYSIS)


@pytest.fixture
def make_asset() -> Callable[..., MediaAsset]:
    def _make(size: int = 1024, name: str = "ride.mp4", mime_type: str = "video/mp4") -> MediaAsset:
        return MediaAsset(data=bytes(i % 251 for i in range(size)), name=name, mime_type=mime_type)

    return _make


class FakeEngine:
    """In-memory IMediaEngine; exec writes an output half the input size."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.loaded = False
        self.load_calls = 0
        self.exec_calls: list[list[str]] = []
        self.ratios = [0.25, 0.5, 0.5, 1.0]
        self.fail_exec = False
        self.fail_read = False

    async def load(self) -> None:
        self.load_calls += 1
        self.loaded = True

    async def write_file(self, name: str, data: bytes) -> None:
        self.files[name] = bytes(data)

    async def read_file(self, name: str) -> bytes:
        if self.fail_read or name not in self.files:
            raise TranscodeError(f"Output file was not produced: {name}")
        return self.files[name]

    async def delete_file(self, name: str) -> None:
        self.files.pop(name, None)

    async def exec(self, args, on_ratio=None, duration_seconds=None) -> None:
        self.exec_calls.append(list(args))
        if self.fail_exec:
            raise TranscodeError("ffmpeg failed", details="encoder error")
        source = self.files[args[args.index("-i") + 1]]
        if on_ratio is not None and duration_seconds:
            for ratio in self.ratios:
                on_ratio(ratio)
        self.files[args[-1]] = source[: max(1, len(source) // 2)]


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


class FakeRemoteService:
    """Scripted IRemoteFileService recording every call."""

    def __init__(self) -> None:
        self.upload_url = "https://generativelanguage.googleapis.com/upload/v1beta/files?upload_id=abc"
        self.file_info: dict[str, Any] = {
            "name": "files/abc123",
            "uri": "https://files.example/v1beta/files/abc123",
            "mimeType": "video/mp4",
            "state": "PROCESSING",
        }
        self.statuses: list[Any] = []
        self.default_status: dict[str, Any] = {"state": "ACTIVE"}
        self.chunk_failures: dict[int, int] = {}
        self.response: dict[str, Any] = {}

        self.start_calls: list[tuple[str, int, str]] = []
        self.chunk_calls: list[tuple[str, int, int, bool]] = []
        self.status_calls: list[str] = []
        self.generate_calls: list[dict[str, Any]] = []

    def respond_with_text(self, text: str) -> None:
        self.response = {"candidates": [{"content": {"parts": [{"text": text}]}}]}

    async def start_upload(self, display_name: str, total_bytes: int, mime_type: str) -> str:
        self.start_calls.append((display_name, total_bytes, mime_type))
        return self.upload_url

    async def upload_chunk(self, upload_url, offset, data, finalize):
        self.chunk_calls.append((upload_url, offset, len(data), finalize))
        remaining = self.chunk_failures.get(offset, 0)
        if remaining:
            self.chunk_failures[offset] = remaining - 1
            raise ChunkUploadError("Failed to upload chunk: 503", offset, status_code=503)
        return dict(self.file_info) if finalize else None

    async def get_file(self, name: str) -> dict[str, Any]:
        self.status_calls.append(name)
        if self.statuses:
            status = self.statuses.pop(0)
        else:
            status = self.default_status
        if isinstance(status, Exception):
            raise status
        if not isinstance(status, dict):
            return status
        return {"uri": self.file_info["uri"], "mimeType": self.file_info["mimeType"], **status}

    async def generate_content(self, body: dict[str, Any]) -> dict[str, Any]:
        self.generate_calls.append(body)
        return self.response


@pytest.fixture
def remote() -> FakeRemoteService:
    return FakeRemoteService()
