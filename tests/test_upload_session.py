"""Tests for the chunked upload session and readiness polling."""

import math

import pytest

from equilens.errors import (
    ChunkUploadError,
    ProcessingTimeoutError,
    RemoteProcessingFailedError,
    RemoteStatusError,
    SessionStartError,
    UploadCancelledError,
)
from equilens.models.progress import UploadStage
from equilens.models.upload import RemoteFileState, SessionState
from equilens.services.upload_session import CancellationToken, ChunkedUploadSession

MiB = 1024 * 1024


def _session(remote, asset, **kwargs) -> ChunkedUploadSession:
    kwargs.setdefault("poll_interval", 0)
    return ChunkedUploadSession(remote, asset, **kwargs)


class TestChunking:
    @pytest.mark.asyncio
    async def test_ten_megabytes_in_three_megabyte_chunks(self, remote, make_asset) -> None:
        asset = make_asset(10 * MiB)
        session = _session(remote, asset, chunk_size=3 * MiB)
        handle = await session.upload()

        offsets = [call[1] for call in remote.chunk_calls]
        lengths = [call[2] for call in remote.chunk_calls]
        finalize = [call[3] for call in remote.chunk_calls]
        assert offsets == [0, 3145728, 6291456, 9437184]
        assert lengths[-1] == 10485760 - 9437184
        assert finalize == [False, False, False, True]
        assert all(call[0] == remote.upload_url for call in remote.chunk_calls)
        assert remote.start_calls == [("ride.mp4", 10485760, "video/mp4")]
        assert handle.name == "files/abc123"
        assert session.state == SessionState.PROCESSING
        assert session.bytes_sent == asset.size

    @pytest.mark.parametrize(
        "size,chunk",
        [(1, 3), (3, 3), (4, 3), (100, 7), (5 * MiB, MiB), (5 * MiB + 1, MiB)],
    )
    @pytest.mark.asyncio
    async def test_chunk_count(self, remote, make_asset, size: int, chunk: int) -> None:
        session = _session(remote, make_asset(size), chunk_size=chunk)
        await session.upload()

        assert len(remote.chunk_calls) == math.ceil(size / chunk)
        assert sum(call[2] for call in remote.chunk_calls) == size
        assert [call[3] for call in remote.chunk_calls].count(True) == 1
        assert remote.chunk_calls[-1][3]

    @pytest.mark.asyncio
    async def test_single_shot(self, remote, make_asset) -> None:
        session = _session(remote, make_asset(5000), chunk_size=None)
        await session.upload()
        assert remote.chunk_calls == [(remote.upload_url, 0, 5000, True)]

    @pytest.mark.asyncio
    async def test_mime_type_falls_back_to_asset(self, remote, make_asset) -> None:
        del remote.file_info["mimeType"]
        session = _session(remote, make_asset(10, mime_type="video/quicktime"))
        handle = await session.upload()
        assert handle.mime_type == "video/quicktime"

    @pytest.mark.asyncio
    async def test_empty_asset(self, remote, make_asset) -> None:
        with pytest.raises(ValueError):
            await _session(remote, make_asset(0)).upload()
        assert remote.start_calls == []

    def test_invalid_arguments(self, remote, make_asset) -> None:
        with pytest.raises(ValueError):
            ChunkedUploadSession(remote, make_asset(10), chunk_size=0)
        with pytest.raises(ValueError):
            ChunkedUploadSession(remote, make_asset(10), poll_interval=-1)
        with pytest.raises(ValueError):
            ChunkedUploadSession(remote, make_asset(10), max_poll_attempts=0)


class TestSendChunk:
    @pytest.mark.asyncio
    async def test_requires_start(self, remote, make_asset) -> None:
        session = _session(remote, make_asset(10))
        with pytest.raises(RuntimeError):
            await session.send_chunk(0, b"x" * 10, is_last=True)

    @pytest.mark.asyncio
    async def test_out_of_order(self, remote, make_asset) -> None:
        asset = make_asset(10)
        session = _session(remote, asset, chunk_size=5)
        await session.start()
        with pytest.raises(ValueError):
            await session.send_chunk(5, asset.slice(5, 5), is_last=True)

    @pytest.mark.asyncio
    async def test_finalize_flag_must_match_end(self, remote, make_asset) -> None:
        asset = make_asset(10)
        session = _session(remote, asset)
        await session.start()
        with pytest.raises(ValueError):
            await session.send_chunk(0, asset.slice(0, 5), is_last=True)
        with pytest.raises(ValueError):
            await session.send_chunk(0, asset.slice(0, 10), is_last=False)
        assert remote.chunk_calls == []

    @pytest.mark.asyncio
    async def test_ack(self, remote, make_asset) -> None:
        asset = make_asset(10)
        session = _session(remote, asset)
        await session.start()
        ack = await session.send_chunk(0, asset.slice(0, 4), is_last=False)
        assert (ack.offset, ack.length, ack.bytes_sent, ack.finalized) == (0, 4, 4, False)
        assert session.state == SessionState.UPLOADING
        ack = await session.send_chunk(4, asset.slice(4, 6), is_last=True)
        assert ack.finalized
        assert ack.file.name == "files/abc123"

    @pytest.mark.asyncio
    async def test_start_twice(self, remote, make_asset) -> None:
        session = _session(remote, make_asset(10))
        await session.start()
        with pytest.raises(RuntimeError):
            await session.start()


class TestFailures:
    @pytest.mark.asyncio
    async def test_start_error_propagates(self, remote, make_asset) -> None:
        async def reject(*args):
            raise SessionStartError("Failed to start upload: 500", status_code=500)

        remote.start_upload = reject
        session = _session(remote, make_asset(10))
        with pytest.raises(SessionStartError):
            await session.run()
        assert session.state == SessionState.IDLE

    @pytest.mark.asyncio
    async def test_chunk_error_then_resume(self, remote, make_asset) -> None:
        asset = make_asset(10 * MiB)
        remote.chunk_failures = {6291456: 1}
        session = _session(remote, asset, chunk_size=3 * MiB)

        with pytest.raises(ChunkUploadError) as exc_info:
            await session.upload()
        assert exc_info.value.offset == 6291456
        assert session.bytes_sent == 6291456
        assert session.state == SessionState.UPLOADING

        handle = await session.upload()
        offsets = [call[1] for call in remote.chunk_calls]
        assert offsets == [0, 3145728, 6291456, 6291456, 9437184]
        assert len(remote.start_calls) == 1
        assert handle.name == "files/abc123"

    @pytest.mark.asyncio
    async def test_invalid_finalize_response(self, remote, make_asset) -> None:
        asset = make_asset(6 * MiB)
        remote.file_info["uri"] = None
        session = _session(remote, asset, chunk_size=3 * MiB)

        with pytest.raises(ChunkUploadError) as exc_info:
            await session.upload()
        assert exc_info.value.offset == 3 * MiB
        assert exc_info.value.details
        assert session.bytes_sent == 3 * MiB
        assert session.state == SessionState.UPLOADING

        remote.file_info["uri"] = "https://files.example/v1beta/files/abc123"
        handle = await session.upload()
        assert handle.uri == "https://files.example/v1beta/files/abc123"
        assert session.bytes_sent == 6 * MiB
        assert [call[1] for call in remote.chunk_calls] == [0, 3 * MiB, 3 * MiB]
        assert handle.name == "files/abc123"


class TestPolling:
    @pytest.mark.asyncio
    async def test_active_after_59_processing(self, remote, make_asset) -> None:
        remote.statuses = [{"state": "PROCESSING"}] * 59 + [{"state": "ACTIVE"}]
        session = _session(remote, make_asset(100), max_poll_attempts=60)
        handle = await session.run()

        assert handle.state == RemoteFileState.ACTIVE
        assert session.state == SessionState.ACTIVE
        assert len(remote.status_calls) == 60
        assert set(remote.status_calls) == {"files/abc123"}

    @pytest.mark.asyncio
    async def test_timeout(self, remote, make_asset) -> None:
        remote.default_status = {"state": "PROCESSING"}
        session = _session(remote, make_asset(100), max_poll_attempts=60)

        with pytest.raises(ProcessingTimeoutError) as exc_info:
            await session.run()
        assert exc_info.value.attempts == 60
        assert exc_info.value.last_state == "PROCESSING"
        assert len(remote.status_calls) == 60

    @pytest.mark.asyncio
    async def test_failed(self, remote, make_asset) -> None:
        remote.statuses = [{"state": "PROCESSING"}, {"state": "FAILED"}]
        session = _session(remote, make_asset(100))

        with pytest.raises(RemoteProcessingFailedError) as exc_info:
            await session.run()
        assert exc_info.value.file_name == "files/abc123"
        assert session.state == SessionState.FAILED

    @pytest.mark.asyncio
    async def test_status_errors_are_tolerated(self, remote, make_asset) -> None:
        remote.statuses = [
            RemoteStatusError("Failed to check status: 500", status_code=500),
            {"state": "PROCESSING"},
            RemoteStatusError("Failed to check status: 502", status_code=502),
            {"state": "ACTIVE"},
        ]
        session = _session(remote, make_asset(100))
        handle = await session.run()
        assert handle.state == RemoteFileState.ACTIVE
        assert len(remote.status_calls) == 4

    @pytest.mark.asyncio
    async def test_status_errors_count_as_attempts(self, remote, make_asset) -> None:
        remote.statuses = [RemoteStatusError("down")] * 3
        session = _session(remote, make_asset(100), max_poll_attempts=3)
        with pytest.raises(ProcessingTimeoutError):
            await session.run()
        assert len(remote.status_calls) == 3

    @pytest.mark.asyncio
    async def test_non_object_status_counts_as_attempt(self, remote, make_asset) -> None:
        remote.statuses = [[], "PROCESSING", {"state": "ACTIVE"}]
        session = _session(remote, make_asset(100))
        handle = await session.run()
        assert handle.state == RemoteFileState.ACTIVE
        assert len(remote.status_calls) == 3

    @pytest.mark.asyncio
    async def test_non_object_status_until_timeout(self, remote, make_asset) -> None:
        remote.statuses = [None] * 2
        session = _session(remote, make_asset(100), max_poll_attempts=2)
        with pytest.raises(ProcessingTimeoutError) as exc_info:
            await session.run()
        assert exc_info.value.last_state == "PROCESSING"
        assert len(remote.status_calls) == 2

    @pytest.mark.asyncio
    async def test_already_active_skips_polling(self, remote, make_asset) -> None:
        remote.file_info["state"] = "ACTIVE"
        session = _session(remote, make_asset(100))
        await session.run()
        assert remote.status_calls == []

    @pytest.mark.asyncio
    async def test_unknown_state_keeps_polling(self, remote, make_asset) -> None:
        remote.statuses = [{"state": "SOMETHING_NEW"}, {"state": "ACTIVE"}]
        session = _session(remote, make_asset(100))
        handle = await session.run()
        assert handle.state == RemoteFileState.ACTIVE
        assert len(remote.status_calls) == 2

    @pytest.mark.asyncio
    async def test_poll_before_upload(self, remote, make_asset) -> None:
        with pytest.raises(RuntimeError):
            await _session(remote, make_asset(100)).poll_until_active()


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_between_chunks(self, remote, make_asset) -> None:
        token = CancellationToken()

        def on_progress(event) -> None:
            if event.stage == UploadStage.UPLOADING:
                token.cancel()

        session = _session(
            remote, make_asset(30), chunk_size=10, cancel_token=token, on_progress=on_progress
        )
        with pytest.raises(UploadCancelledError):
            await session.run()
        assert len(remote.chunk_calls) == 1

    @pytest.mark.asyncio
    async def test_cancel_during_polling(self, remote, make_asset) -> None:
        remote.default_status = {"state": "PROCESSING"}
        session = _session(remote, make_asset(100))

        calls = 0
        original = remote.get_file

        async def get_file(name: str):
            nonlocal calls
            calls += 1
            if calls == 2:
                session.cancel()
            return await original(name)

        remote.get_file = get_file
        with pytest.raises(UploadCancelledError):
            await session.run()
        assert calls == 2


class TestProgress:
    @pytest.mark.asyncio
    async def test_monotonic_and_complete(self, remote, make_asset) -> None:
        remote.statuses = [{"state": "PROCESSING"}] * 3 + [{"state": "ACTIVE"}]
        events = []
        session = _session(remote, make_asset(10 * MiB), chunk_size=3 * MiB, on_progress=events.append)
        await session.run()

        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert percents[0] == 0
        assert percents[-1] == 100
        assert events[-1].stage == UploadStage.ACTIVE
        uploading = [e.percent for e in events if e.stage == UploadStage.UPLOADING]
        assert uploading[-1] == 50
