"""Transcode decision models."""

from enum import Enum

from pydantic import BaseModel, Field, model_validator


class TranscodeAction(str, Enum):
    """Whether an asset is compressed before upload."""

    SKIP = "skip"
    COMPRESS = "compress"


class TranscodeVerdict(BaseModel):
    """Decision plus the reasons that produced it."""

    action: TranscodeAction
    is_high_resolution: bool
    is_oversized: bool
    height: int = Field(..., description="Probed frame height")
    size_mb: float = Field(..., description="Asset size in megabytes (10^6 bytes)")

    @model_validator(mode="after")
    def _check_consistency(self) -> "TranscodeVerdict":
        expected = (
            TranscodeAction.COMPRESS
            if self.is_high_resolution or self.is_oversized
            else TranscodeAction.SKIP
        )
        if self.action != expected:
            raise ValueError(
                f"action {self.action.value} contradicts reasons "
                f"(high_res={self.is_high_resolution}, oversized={self.is_oversized})"
            )
        return self

    @property
    def should_compress(self) -> bool:
        return self.action == TranscodeAction.COMPRESS
