"""
Filter graph construction.

Builds a structured description of the slideshow graph (one transform per
segment, one crossfade per boundary) and serialises it to ffmpeg syntax.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920
FRAME_RATE = 30
ZOOM_GAIN = 0.05
TRANSITION_DURATION = 1.0
TRANSITION_TYPE = "fade"


@dataclass(frozen=True)
class SegmentTransform:
    """Per-segment video chain: fit, pad, slow zoom, trim."""

    input_index: int
    duration: float
    width: int = OUTPUT_WIDTH
    height: int = OUTPUT_HEIGHT
    fps: int = FRAME_RATE
    zoom_gain: float = ZOOM_GAIN

    @property
    def label(self) -> str:
        return f"v{self.input_index}"

    @property
    def frame_count(self) -> int:
        return max(1, round(self.duration * self.fps))


@dataclass(frozen=True)
class Transition:
    """Crossfade between the running composite and the next segment."""

    index: int
    offset: float
    duration: float = TRANSITION_DURATION
    kind: str = TRANSITION_TYPE


@dataclass
class FilterGraph:
    """Structured slideshow graph."""

    segments: List[SegmentTransform] = field(default_factory=list)
    transitions: List[Transition] = field(default_factory=list)
    output_label: str = "outv"


def transition_offsets(timings: Sequence[float], fade: float = TRANSITION_DURATION) -> List[float]:
    """
    Start time of each crossfade within the composite stream.

    Args:
        timings: Adjusted segment durations
        fade: Crossfade duration

    Returns:
        n-1 offsets; offset i = max(0, sum(timings[:i]) - i*fade) for i in 1..n-1
    """
    offsets = []
    for i in range(1, len(timings)):
        offsets.append(max(0.0, sum(timings[:i]) - i * fade))
    return offsets


def build_filter_graph(timings: Sequence[float], fade: float = TRANSITION_DURATION) -> FilterGraph:
    """
    Build the graph for a slideshow with the given segment durations.

    Args:
        timings: Adjusted segment durations, one per image input
        fade: Crossfade duration between consecutive segments

    Returns:
        FilterGraph with len(timings) segments and len(timings)-1 transitions

    Raises:
        ValueError: If timings is empty
    """
    if not timings:
        raise ValueError("At least one segment is required")

    graph = FilterGraph()
    for i, duration in enumerate(timings):
        graph.segments.append(SegmentTransform(input_index=i, duration=float(duration)))

    for i, offset in enumerate(transition_offsets(timings, fade), start=1):
        graph.transitions.append(Transition(index=i, offset=offset, duration=fade))

    return graph


def _serialize_segment(segment: SegmentTransform) -> str:
    w, h = segment.width, segment.height
    frames = segment.frame_count
    return (
        f"[{segment.input_index}:v]"
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2:black,"
        f"zoompan=z='min(1+{segment.zoom_gain}*on/{frames},{1 + segment.zoom_gain:g})'"
        f":d=1:x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)':s={w}x{h}:fps={segment.fps},"
        f"trim=duration={segment.duration:.3f},setpts=PTS-STARTPTS,format=yuv420p"
        f"[{segment.label}]"
    )


def serialize(graph: FilterGraph) -> str:
    """
    Render a FilterGraph as an ffmpeg -filter_complex string.

    Args:
        graph: Structured graph

    Returns:
        Filter chains joined by ';', final stream labelled graph.output_label
    """
    chains = [_serialize_segment(s) for s in graph.segments]

    if not graph.transitions:
        chains.append(f"[{graph.segments[0].label}]format=yuv420p[{graph.output_label}]")
        return ";".join(chains)

    current = graph.segments[0].label
    for transition in graph.transitions:
        is_last = transition.index == len(graph.transitions)
        out = graph.output_label if is_last else f"x{transition.index}"
        nxt = graph.segments[transition.index].label
        chains.append(
            f"[{current}][{nxt}]xfade=transition={transition.kind}"
            f":duration={transition.duration:g}:offset={transition.offset:.3f}[{out}]"
        )
        current = out

    return ";".join(chains)


def build_encoder_args(
    image_paths: Sequence[Path],
    audio_path: Path,
    timings: Sequence[float],
    graph: FilterGraph,
    output_path: Path,
    ffmpeg_binary: str = "ffmpeg",
) -> List[str]:
    """
    Full encoder command line.

    Args:
        image_paths: One still image per segment, in order
        audio_path: Narration track
        timings: Adjusted durations used for each looped image input
        graph: Graph built from the same timings
        output_path: Destination MP4
        ffmpeg_binary: Encoder executable

    Returns:
        argv list for the encoder process
    """
    args = [ffmpeg_binary, "-y", "-hide_banner"]
    for image_path, duration in zip(image_paths, timings):
        args += ["-loop", "1", "-framerate", str(FRAME_RATE), "-t", f"{duration:.3f}", "-i", str(image_path)]
    args += ["-i", str(audio_path)]

    args += [
        "-filter_complex", serialize(graph),
        "-map", f"[{graph.output_label}]",
        "-map", f"{len(image_paths)}:a",
        "-c:v", "libx264",
        "-c:a", "aac",
        "-r", str(FRAME_RATE),
        "-preset", "medium",
        "-crf", "23",
        "-pix_fmt", "yuv420p",
        "-shortest",
        str(output_path),
    ]
    return args
