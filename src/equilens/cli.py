"""EquiLens command-line interface with subcommands.

Usage:
    equilens probe <video>
    equilens compress <video> [-o output.mp4]
    equilens upload <video> [--no-compress]
    equilens analyze <video> [-o result.json] [--no-compress]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from equilens.config import settings
from equilens.errors import EquiLensError
from equilens.models.media import CompressionStats, MediaAsset
from equilens.models.progress import CompressionProgress, UploadProgress
from equilens.services.engine import FFmpegEngine
from equilens.services.gemini_client import GeminiFileService
from equilens.services.pipeline import AnalysisPipeline
from equilens.services.probe import VideoProbe
from equilens.services.transcode_policy import TranscodeDecisionPolicy
from equilens.services.transcoder import Transcoder, VideoCompressor, compressed_name
from equilens.services.upload_session import ChunkedUploadSession


def _load_asset(path_str: str) -> MediaAsset:
    video_path = Path(path_str).resolve()
    if not video_path.exists():
        print(f"Error: file not found: {video_path}", file=sys.stderr)
        sys.exit(1)
    return MediaAsset.from_path(video_path)


def _progress_bar(progress: float, status: str) -> None:
    bar_width = 30
    filled = int(bar_width * progress)
    bar = "=" * filled + "-" * (bar_width - filled)
    print(f"\r  [{bar}] {progress*100:.0f}% {status:<40}", end="", flush=True)


def _build_compressor(engine: FFmpegEngine) -> VideoCompressor:
    return VideoCompressor(
        probe=VideoProbe(ffprobe_path=settings.ffprobe_path),
        policy=TranscodeDecisionPolicy(
            height_threshold=settings.compress_height_threshold,
            size_threshold_mb=settings.compress_size_threshold_mb,
        ),
        transcoder=Transcoder(engine),
    )


# --- probe ---


async def cmd_probe(args: argparse.Namespace) -> None:
    """Print metadata and the compression verdict for a video."""
    asset = _load_asset(args.input)
    metadata = await VideoProbe(ffprobe_path=settings.ffprobe_path).probe(asset)
    policy = TranscodeDecisionPolicy(
        height_threshold=settings.compress_height_threshold,
        size_threshold_mb=settings.compress_size_threshold_mb,
    )
    verdict = policy.decide(metadata, asset.size)

    print(f"File:       {asset.name}")
    print(f"Resolution: {metadata.resolution}")
    print(f"Duration:   {metadata.duration_seconds:.1f}s")
    print(f"Size:       {verdict.size_mb:.1f}MB")
    print(f"Verdict:    {verdict.action.value}")


# --- compress ---


async def cmd_compress(args: argparse.Namespace) -> None:
    """Compress a video if it exceeds the configured thresholds."""
    asset = _load_asset(args.input)
    source = Path(args.input).resolve()
    output_path = Path(args.output) if args.output else source.parent / compressed_name(source.name)

    def on_progress(event: CompressionProgress) -> None:
        _progress_bar(event.percent / 100, event.message)

    print(f"Compressing: {asset.name} ({asset.size_mb:.1f}MB)")
    engine = FFmpegEngine(ffmpeg_path=settings.ffmpeg_path)
    try:
        result = await _build_compressor(engine).prepare(asset, on_progress=on_progress)
    finally:
        await engine.close()
    print()  # newline after progress bar

    if result is asset:
        print("Video already optimized, nothing written")
        return

    output_path.write_bytes(result.data)
    stats = CompressionStats.between(asset, result)
    print(
        f"  {stats.original_mb}MB -> {stats.compressed_mb}MB "
        f"({stats.reduction_percent}% smaller)"
    )
    print(f"\nSaved: {output_path}")


# --- upload ---


async def cmd_upload(args: argparse.Namespace) -> None:
    """Upload a video and wait until the remote file is ACTIVE."""
    asset = _load_asset(args.input)

    def on_progress(event: UploadProgress) -> None:
        _progress_bar(event.percent / 100, event.message)

    async with GeminiFileService.from_settings(settings) as service:
        if not args.no_compress:
            engine = FFmpegEngine(ffmpeg_path=settings.ffmpeg_path)
            try:
                asset = await _build_compressor(engine).prepare(asset)
            finally:
                await engine.close()
        session = ChunkedUploadSession(
            service,
            asset,
            chunk_size=settings.upload_chunk_size_bytes,
            poll_interval=settings.poll_interval_seconds,
            max_poll_attempts=settings.poll_max_attempts,
            on_progress=on_progress,
        )
        print(f"Uploading: {asset.name} ({asset.size_mb:.1f}MB)")
        handle = await session.run()
    print()

    print(f"  name:  {handle.name}")
    print(f"  uri:   {handle.uri}")
    print(f"  state: {handle.state.value}")


# --- analyze ---


async def cmd_analyze(args: argparse.Namespace) -> None:
    """Compress, upload and analyze a video end to end."""
    asset = _load_asset(args.input)
    print(f"Analyzing: {asset.name} ({asset.size_mb:.1f}MB)")

    async with GeminiFileService.from_settings(settings) as service:
        engine = None if args.no_compress else FFmpegEngine(ffmpeg_path=settings.ffmpeg_path)
        try:
            pipeline = AnalysisPipeline.from_settings(
                settings, service, engine=engine, compress=not args.no_compress
            )
            outcome = await pipeline.run(asset, progress_callback=_progress_bar)
        finally:
            if engine is not None:
                await engine.close()
    print()

    result = outcome.result
    if outcome.stats is not None:
        print(
            f"  compressed: {outcome.stats.original_mb}MB -> {outcome.stats.compressed_mb}MB"
        )
    print(f"  jumps:    {result.jump_count}")
    for jump in result.jumps:
        print(
            f"    #{jump.jump_number} {jump.start_time:.1f}s-{jump.end_time:.1f}s "
            f"score {jump.overall_score:.1f} ({len(jump.phases)} phases)"
        )
    print(f"  movement: {result.movement_name}")
    print(f"  similar:  {result.similar_pro_rider}")

    if args.output:
        output_path = Path(args.output)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(by_alias=True), f, ensure_ascii=False, indent=2)
        print(f"\nSaved: {output_path}")
    else:
        print(f"\n{result.overall_summary}")


# --- Main CLI ---

_COMMANDS = {
    "probe": cmd_probe,
    "compress": cmd_compress,
    "upload": cmd_upload,
    "analyze": cmd_analyze,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="equilens",
        description="EquiLens - show-jumping video analysis CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_probe = subparsers.add_parser("probe", help="Show video metadata and compression verdict")
    p_probe.add_argument("input", type=str, help="Input video file")

    p_compress = subparsers.add_parser("compress", help="Compress a video for upload")
    p_compress.add_argument("input", type=str, help="Input video file")
    p_compress.add_argument("-o", "--output", type=str, help="Output path (default: <stem>_compressed.mp4)")

    p_upload = subparsers.add_parser("upload", help="Upload a video to the analysis service")
    p_upload.add_argument("input", type=str, help="Input video file")
    p_upload.add_argument("--no-compress", action="store_true", help="Upload the original file")

    p_analyze = subparsers.add_parser("analyze", help="Analyze jumps in a video")
    p_analyze.add_argument("input", type=str, help="Input video file")
    p_analyze.add_argument("-o", "--output", type=str, help="Save the result JSON to this path")
    p_analyze.add_argument("--no-compress", action="store_true", help="Upload the original file")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        asyncio.run(_COMMANDS[args.command](args))
    except EquiLensError as e:
        print(f"\nError: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
