"""
Data models for the video generation pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .video import (
    MAX_SEGMENTS,
    MIN_SEGMENTS,
    Segment,
    GenerateVideoRequest,
    TimingPlan,
    PipelineStep,
    ProgressEvent,
    AudioArtifact,
    ImageArtifact,
    CompositionResult,
    PipelineResult,
)

__all__ = [
    "MAX_SEGMENTS",
    "MIN_SEGMENTS",
    # Request models
    "Segment",
    "GenerateVideoRequest",
    # Timing models
    "TimingPlan",
    # Progress models
    "PipelineStep",
    "ProgressEvent",
    # Artifact models
    "AudioArtifact",
    "ImageArtifact",
    "CompositionResult",
    "PipelineResult",
]
