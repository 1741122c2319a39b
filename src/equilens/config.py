"""Configuration management for EquiLens."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Directories
    upload_dir: Path = Path("./uploads")

    # Remote analysis service
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-pro"
    gemini_api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_upload_base: str = "https://generativelanguage.googleapis.com/upload/v1beta"
    http_timeout_seconds: float = 60.0

    # Resumable upload
    upload_chunk_size_bytes: int = 3 * 1024 * 1024
    poll_interval_seconds: float = 1.0
    poll_max_attempts: int = 60

    # Compression
    compress_height_threshold: int = 480
    compress_size_threshold_mb: float = 3.0
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Jobs
    max_concurrent_jobs: int = 2

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
