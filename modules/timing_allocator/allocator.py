"""
Segment timing allocation.

Derive per-segment display durations from voiceover text so the whole
video lands in the 25-40 second range.
"""

import re
from typing import List, Sequence, Union

from shared.models.video import Segment, TimingPlan

MIN_TARGET_DURATION = 25.0
MAX_TARGET_DURATION = 40.0
MIN_SEGMENT_DURATION = 2.5
MAX_SEGMENT_DURATION = 12.0

# Average words per segment at which the target reaches MAX_TARGET_DURATION
COMPLEXITY_WORDS = 15

MIN_WEIGHT = 2.0
EMPHASIS_BOOST = 1.2
CALL_TO_ACTION_BOOST = 1.1

BISECTION_STEPS = 60

_PUNCTUATION = re.compile(r"[.,!?;:]")
_EMPHASIS_WORDS = re.compile(r"\b(important|critical|key|urgent)\b", re.IGNORECASE)
_CALL_TO_ACTION = re.compile(r"\b(call to action|contact|today|now)\b", re.IGNORECASE)


def word_count(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def has_emphasis(text: str) -> bool:
    """True if the text shouts or flags itself as important."""
    return "!" in text or bool(_EMPHASIS_WORDS.search(text))


def has_call_to_action(text: str) -> bool:
    """True if the text asks the viewer to act."""
    return bool(_CALL_TO_ACTION.search(text))


def segment_weight(text: str) -> float:
    """
    Relative screen-time weight of one voiceover line.

    Args:
        text: Voiceover text

    Returns:
        Weight, never below MIN_WEIGHT
    """
    weight = (
        word_count(text) * 0.7
        + len(text) * 0.02
        + len(_PUNCTUATION.findall(text)) * 0.5
    )

    if has_emphasis(text):
        weight *= EMPHASIS_BOOST
    if has_call_to_action(text):
        weight *= CALL_TO_ACTION_BOOST

    return max(weight, MIN_WEIGHT)


def target_duration(texts: Sequence[str]) -> float:
    """
    Total duration the plan aims for.

    Wordier segments push the target towards MAX_TARGET_DURATION.

    Args:
        texts: Voiceover texts

    Returns:
        Target duration in seconds, within [25, 40]
    """
    avg_words = sum(word_count(t) for t in texts) / len(texts)
    complexity_ratio = min(avg_words / COMPLEXITY_WORDS, 1.0)
    return MIN_TARGET_DURATION + (MAX_TARGET_DURATION - MIN_TARGET_DURATION) * complexity_ratio


def _clamp(value: float) -> float:
    return min(max(value, MIN_SEGMENT_DURATION), MAX_SEGMENT_DURATION)


def _distribute(weights: List[float], total: float) -> List[float]:
    """
    Split `total` proportionally to `weights` within the per-segment band.

    Finds the scale factor whose clamped shares sum to `total` by bisection.
    The clamped sum never decreases as the scale grows, so the search always
    converges when `total` is reachable, i.e. within
    [n * MIN_SEGMENT_DURATION, n * MAX_SEGMENT_DURATION].
    """
    low = 0.0
    high = MAX_SEGMENT_DURATION / min(weights)

    for _ in range(BISECTION_STEPS):
        scale = (low + high) / 2
        if sum(_clamp(scale * w) for w in weights) < total:
            low = scale
        else:
            high = scale

    return [_clamp(high * w) for w in weights]


def allocate(segments: Sequence[Union[Segment, str]]) -> TimingPlan:
    """
    Compute display durations for an ordered list of segments.

    Args:
        segments: Segments (or bare voiceover strings), in display order

    Returns:
        TimingPlan with one duration per segment, each within
        [MIN_SEGMENT_DURATION, MAX_SEGMENT_DURATION], rounded to 0.1s

    Raises:
        ValueError: If no segments are given
    """
    if not segments:
        raise ValueError("At least one segment is required")

    texts = [s.voiceover if isinstance(s, Segment) else s.strip() for s in segments]
    weights = [segment_weight(t) for t in texts]
    target = target_duration(texts)

    # One or two segments cannot reach 25s inside the band; take the closest total
    reachable = min(
        max(target, len(texts) * MIN_SEGMENT_DURATION),
        len(texts) * MAX_SEGMENT_DURATION,
    )

    timings = [round(t, 1) for t in _distribute(weights, reachable)]
    return TimingPlan(timings=timings, target_duration=target)
