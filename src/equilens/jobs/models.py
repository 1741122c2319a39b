"""Job domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from equilens.models.analysis import AnalysisResult


class JobStatus(str, Enum):
    """Status of a job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Job:
    """A background video analysis job."""

    video_path: Path
    id: str = field(default_factory=lambda: str(uuid4()))
    status: JobStatus = JobStatus.PENDING
    progress_percent: int = 0
    progress_message: str = ""
    compress: bool = True
    result: AnalysisResult | None = None
    summary: dict[str, Any] = field(default_factory=dict)
    error_message: str | None = None
    error_type: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def update_progress(self, percent: int, message: str) -> None:
        self.progress_percent = max(self.progress_percent, min(percent, 100))
        self.progress_message = message
        self.updated_at = datetime.now(timezone.utc)
