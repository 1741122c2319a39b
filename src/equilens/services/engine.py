"""FFmpeg engine handle with lazy, single-flight initialization."""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path

from equilens.errors import EngineLoadError, TranscodeError

logger = logging.getLogger(__name__)

RatioCallback = Callable[[float], None]


class FFmpegEngine:
    """Explicit handle to the ffmpeg encoder and its working storage.

    Loading verifies the binary and creates a private working directory. It
    happens at most once per handle: concurrent callers await the same
    in-flight load, and a failed load is forgotten so it can be retried.
    Share one handle across Transcoders to pay the load cost once.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", working_dir: Path | None = None) -> None:
        self._ffmpeg = ffmpeg_path
        self._requested_dir = Path(working_dir) if working_dir else None
        self._working_dir: Path | None = None
        self._owns_dir = False
        self._load_task: asyncio.Task[None] | None = None
        self.version: str | None = None

    @property
    def loaded(self) -> bool:
        return self._working_dir is not None

    @property
    def working_dir(self) -> Path:
        if self._working_dir is None:
            raise EngineLoadError("Video processor is not loaded")
        return self._working_dir

    async def load(self) -> None:
        """Initialize the engine if needed.

        Raises:
            EngineLoadError: If ffmpeg cannot be started.
        """
        if self.loaded:
            return

        if self._load_task is None:
            self._load_task = asyncio.create_task(self._initialize())
        task = self._load_task

        try:
            # shield: a cancelled waiter must not cancel the shared load
            await asyncio.shield(task)
        except Exception:
            if self._load_task is task:
                self._load_task = None
            raise

    async def _initialize(self) -> None:
        logger.info("Loading video processor (%s)", self._ffmpeg)
        try:
            proc = await asyncio.create_subprocess_exec(
                self._ffmpeg,
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            raise EngineLoadError(
                f"Failed to load video processor: {self._ffmpeg} is not available"
            ) from e

        if proc.returncode != 0:
            raise EngineLoadError(
                f"Failed to load video processor: {stderr.decode(errors='ignore').strip()}"
            )

        first_line = stdout.decode(errors="ignore").splitlines()[:1]
        self.version = first_line[0] if first_line else None

        try:
            if self._requested_dir is not None:
                self._requested_dir.mkdir(parents=True, exist_ok=True)
                working_dir = self._requested_dir
            else:
                working_dir = Path(tempfile.mkdtemp(prefix="equilens_engine_"))
                self._owns_dir = True
        except OSError as e:
            raise EngineLoadError(f"Failed to create working storage: {e}") from e
        self._working_dir = working_dir

        logger.info("Video processor ready: %s", self.version or "unknown version")

    # ------------------------------------------------------------------
    # Working storage
    # ------------------------------------------------------------------

    def _path(self, name: str) -> Path:
        if not name or Path(name).name != name:
            raise ValueError(f"Invalid working file name: {name!r}")
        return self.working_dir / name

    async def write_file(self, name: str, data: bytes) -> None:
        path = self._path(name)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise TranscodeError(f"Failed to write working file {name}: {e}") from e

    async def read_file(self, name: str) -> bytes:
        path = self._path(name)
        if not path.exists():
            raise TranscodeError(f"Output file was not produced: {name}")
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise TranscodeError(f"Failed to read working file {name}: {e}") from e

    async def delete_file(self, name: str) -> None:
        """Remove a working file; missing files are ignored."""
        if not self.loaded:
            return
        self._path(name).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def exec(
        self,
        args: list[str],
        on_ratio: RatioCallback | None = None,
        duration_seconds: float | None = None,
    ) -> None:
        """Run ffmpeg with ``args`` inside the working directory.

        Progress is read from ``-progress pipe:1``; ``on_ratio`` receives the
        completed fraction (0-1) when the duration is known, and 1.0 at the end.

        Raises:
            TranscodeError: If ffmpeg exits with an error.
        """
        cmd = [
            self._ffmpeg,
            "-y",
            "-hide_banner",
            "-nostats",
            "-progress", "pipe:1",
            *args,
        ]
        logger.debug("ffmpeg %s", " ".join(args))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self.working_dir,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineLoadError(f"Failed to start {self._ffmpeg}: {e}") from e

        try:
            _, stderr = await asyncio.gather(
                self._read_progress(proc.stdout, on_ratio, duration_seconds),
                proc.stderr.read(),
            )
            returncode = await proc.wait()
        except BaseException:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if returncode != 0:
            message = stderr.decode("utf-8", errors="ignore").strip()
            raise TranscodeError(
                f"ffmpeg failed: {message[-1000:] or 'unknown error'}",
                details={"returncode": returncode},
            )

    @staticmethod
    async def _read_progress(
        stream: asyncio.StreamReader,
        on_ratio: RatioCallback | None,
        duration_seconds: float | None,
    ) -> None:
        async for raw in stream:
            key, _, value = raw.decode(errors="ignore").strip().partition("=")
            if on_ratio is None:
                continue
            if key == "progress" and value == "end":
                on_ratio(1.0)
            elif key in ("out_time_us", "out_time_ms") and duration_seconds:
                # both keys are in microseconds
                try:
                    elapsed = int(value) / 1_000_000
                except ValueError:
                    continue
                on_ratio(min(max(elapsed / duration_seconds, 0.0), 1.0))

    async def close(self) -> None:
        """Remove working storage created by this handle."""
        if self._working_dir is not None and self._owns_dir:
            await asyncio.to_thread(shutil.rmtree, self._working_dir, True)
        self._working_dir = None
        self._owns_dir = False
        self._load_task = None

    async def __aenter__(self) -> "FFmpegEngine":
        await self.load()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
