"""
Compositor Module.

Turns images, narration and segment timings into a vertical MP4 slideshow.
"""

from modules.compositor.compositor import (
    Compositor,
    encode_progress,
    parse_progress_time,
    reconcile_timings,
)
from modules.compositor.filter_graph import (
    FilterGraph,
    SegmentTransform,
    Transition,
    build_encoder_args,
    build_filter_graph,
    serialize,
)
from modules.compositor.probe import probe_media_duration

__all__ = [
    "Compositor",
    "FilterGraph",
    "SegmentTransform",
    "Transition",
    "build_encoder_args",
    "build_filter_graph",
    "encode_progress",
    "parse_progress_time",
    "probe_media_duration",
    "reconcile_timings",
    "serialize",
]
