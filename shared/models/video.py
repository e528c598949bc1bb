"""
Video pipeline models.

Request, timing, progress and result models shared by the pipeline stages.
"""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_SEGMENTS = 1
MAX_SEGMENTS = 6


class Segment(BaseModel):
    """One (visual prompt, voiceover line) pair."""

    model_config = ConfigDict(frozen=True)

    visual: str
    voiceover: str

    @field_validator("visual", "voiceover")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class GenerateVideoRequest(BaseModel):
    """Video submission payload."""

    model_config = ConfigDict(populate_by_name=True)

    segments: List[Segment] = Field(
        alias="imagePrompts",
        min_length=MIN_SEGMENTS,
        max_length=MAX_SEGMENTS,
    )
    voice_id: Optional[str] = Field(default=None, alias="voiceId")

    @field_validator("voice_id")
    @classmethod
    def validate_voice_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class TimingPlan(BaseModel):
    """Ordered per-segment display durations for one run."""

    model_config = ConfigDict(frozen=True)

    timings: List[float]
    target_duration: float

    @property
    def raw_sum(self) -> float:
        """Sum before crossfade overlap is subtracted."""
        return sum(self.timings)

    def __len__(self) -> int:
        return len(self.timings)


class PipelineStep(str, Enum):
    """Pipeline states, in the order a run moves through them."""

    INITIALIZING = "initializing"
    CALCULATING_TIMINGS = "calculating-timings"
    GENERATING_AUDIO = "generating-audio"
    GENERATING_IMAGES = "generating-images"
    CREATING_VIDEO = "creating-video"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineStep.COMPLETED, PipelineStep.ERROR)


class ProgressEvent(BaseModel):
    """A single progress update for one session."""

    session_id: str
    step: PipelineStep
    progress: float = Field(ge=0, le=100)
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.step.is_terminal

    def to_message(self) -> Dict[str, Any]:
        """
        Wire format sent to progress subscribers.

        Returns:
            JSON-serialisable dict
        """
        message: Dict[str, Any] = {
            "type": self.step.value if self.is_terminal else "progress",
            "sessionId": self.session_id,
            "step": self.step.value,
            "progress": round(self.progress, 1),
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.payload is not None:
            message["payload"] = self.payload
        return message


class AudioArtifact(BaseModel):
    """Narration audio written by the asset provider."""

    path: Path
    duration_hint: Optional[float] = None  # From file metadata; not authoritative


class ImageArtifact(BaseModel):
    """Segment image written by the asset provider."""

    path: Path


class CompositionResult(BaseModel):
    """Output of the compositor."""

    video_path: Path
    measured_duration_seconds: float
    final_timings: List[float]
    transition_count: int


class PipelineResult(BaseModel):
    """Outcome of one successful pipeline run."""

    video_path: Path
    video_url: str
    measured_duration_seconds: float
    final_timings: List[float]
    optimized_timings: List[float]
