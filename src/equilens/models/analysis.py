"""Structured analysis result models.

Field names follow the wire format of the analysis service (camelCase) via
aliases; Python code uses snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Phase(_WireModel):
    """One biomechanical phase of a jump (approach, takeoff, ...)."""

    start_time: float = Field(..., strict=True, ge=0.0)
    end_time: float = Field(..., strict=True, ge=0.0)
    phase_name: StrictStr
    rider_analysis: StrictStr
    horse_analysis: StrictStr
    physics_note: StrictStr
    score: float = Field(..., strict=True, ge=1, le=10)

    @model_validator(mode="after")
    def _check_interval(self) -> "Phase":
        if self.start_time >= self.end_time:
            raise ValueError(
                f"phase '{self.phase_name}' start_time must be before end_time"
            )
        return self


class Jump(_WireModel):
    """A detected jump and its phases."""

    jump_number: int = Field(..., strict=True)
    start_time: float = Field(..., strict=True, ge=0.0)
    end_time: float = Field(..., strict=True, ge=0.0)
    phases: list[Phase] = Field(default_factory=list)
    overall_score: float = Field(..., strict=True)

    @model_validator(mode="after")
    def _check_phases(self) -> "Jump":
        if self.start_time >= self.end_time:
            raise ValueError(f"jump {self.jump_number} start_time must be before end_time")
        for prev, cur in zip(self.phases, self.phases[1:]):
            if cur.start_time < prev.end_time:
                raise ValueError(
                    f"jump {self.jump_number}: phase '{cur.phase_name}' overlaps "
                    f"or precedes '{prev.phase_name}'"
                )
        return self

    @property
    def duration_seconds(self) -> float:
        return self.end_time - self.start_time


class AnalysisResult(_WireModel):
    """Full analysis of a performance video."""

    jumps: list[Jump]
    overall_summary: StrictStr
    suggested_improvements: list[StrictStr]
    movement_name: StrictStr
    similar_pro_rider: StrictStr

    @property
    def jump_count(self) -> int:
        return len(self.jumps)

    def phase_at(self, seconds: float) -> Phase | None:
        """Return the phase covering a playback position, if any."""
        for jump in self.jumps:
            for phase in jump.phases:
                if phase.start_time <= seconds < phase.end_time:
                    return phase
        return None
