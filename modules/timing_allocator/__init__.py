"""
Timing Allocator Module.

Content-derived per-segment durations for the slideshow.
"""

from modules.timing_allocator.allocator import (
    allocate,
    segment_weight,
    target_duration,
    MIN_SEGMENT_DURATION,
    MAX_SEGMENT_DURATION,
    MIN_TARGET_DURATION,
    MAX_TARGET_DURATION,
)

__all__ = [
    "allocate",
    "segment_weight",
    "target_duration",
    "MIN_SEGMENT_DURATION",
    "MAX_SEGMENT_DURATION",
    "MIN_TARGET_DURATION",
    "MAX_TARGET_DURATION",
]
