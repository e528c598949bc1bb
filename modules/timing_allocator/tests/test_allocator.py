"""
Tests for timing allocation.
"""

import random

import pytest

from shared.models.video import Segment, TimingPlan
from modules.timing_allocator.allocator import _distribute
from modules.timing_allocator import (
    allocate,
    segment_weight,
    target_duration,
    MIN_SEGMENT_DURATION,
    MAX_SEGMENT_DURATION,
    MIN_TARGET_DURATION,
    MAX_TARGET_DURATION,
)

WORDS = "the quick brown fox jumps over lazy dog while bright morning light fills every quiet valley".split()


def words(n: int) -> str:
    return " ".join(WORDS[i % len(WORDS)] for i in range(n))


class TestSegmentWeight:
    """Test per-segment weighting."""

    def test_floor(self):
        assert segment_weight("Hi") == 2.0

    def test_base_formula(self):
        text = "one two three four five six"
        expected = 6 * 0.7 + len(text) * 0.02
        assert segment_weight(text) == pytest.approx(expected)

    def test_punctuation_counts(self):
        plain = "one two three four five six"
        punctuated = "one, two; three: four five six."
        assert segment_weight(punctuated) > segment_weight(plain)

    def test_emphasis_boost(self):
        base = "this is a really big deal for us"
        boosted = "this is a really important deal for us"
        expected = (8 * 0.7 + len(boosted) * 0.02) * 1.2
        assert segment_weight(boosted) == pytest.approx(expected)
        assert segment_weight(boosted) > segment_weight(base)

    def test_exclamation_counts_as_emphasis(self):
        text = "we did it together"
        assert segment_weight(text + "!") > segment_weight(text + ".")

    def test_boosts_stack(self):
        text = "this is urgent so contact us"
        expected = (6 * 0.7 + len(text) * 0.02) * 1.2 * 1.1
        assert segment_weight(text) == pytest.approx(expected)

    def test_emphasis_requires_whole_word(self):
        text = "a keyboard sits on the desk here"
        expected = 7 * 0.7 + len(text) * 0.02
        assert segment_weight(text) == pytest.approx(expected)


class TestTargetDuration:
    """Test target duration from verbosity."""

    def test_short_segments(self):
        assert target_duration(["one two three"]) == pytest.approx(28.0)

    def test_capped_at_max(self):
        assert target_duration([words(40), words(30)]) == MAX_TARGET_DURATION

    def test_bounds(self):
        assert target_duration(["hi"]) >= MIN_TARGET_DURATION
        assert target_duration([words(15)]) == MAX_TARGET_DURATION


class TestAllocate:
    """Test full allocation."""

    def test_returns_plan(self):
        plan = allocate([Segment(visual="A cat", voiceover="Meet the cat.")])
        assert isinstance(plan, TimingPlan)
        assert len(plan) == 1

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            allocate([])

    def test_six_wordy_segments_hit_max_target(self):
        plan = allocate([words(15)] * 6)

        assert plan.target_duration == MAX_TARGET_DURATION
        assert plan.raw_sum == pytest.approx(40.0, abs=0.3)
        assert all(t == pytest.approx(40.0 / 6, abs=0.05) for t in plan.timings)

    def test_single_short_segment_capped(self):
        plan = allocate([words(5)])

        assert plan.target_duration == pytest.approx(30.0)
        assert plan.timings == [MAX_SEGMENT_DURATION]

    def test_heavier_segment_gets_more_time(self):
        plan = allocate([words(4), words(14), words(8), words(6)])
        assert plan.timings[1] == max(plan.timings)

    def test_deterministic(self):
        texts = [words(3), words(12), "Contact us today!"]
        assert allocate(texts).timings == allocate(texts).timings

    def test_accepts_segments_and_strings(self):
        texts = [words(5), words(9)]
        segments = [Segment(visual="v", voiceover=t) for t in texts]
        assert allocate(segments).timings == allocate(texts).timings

    def test_heavy_outlier_pinned_to_max(self):
        plan = allocate([words(60), "hi", "hi", "hi"])

        assert plan.timings[0] == MAX_SEGMENT_DURATION
        assert all(MIN_SEGMENT_DURATION <= t <= MAX_SEGMENT_DURATION for t in plan.timings)
        assert plan.raw_sum == pytest.approx(plan.target_duration, abs=0.2)


@pytest.mark.parametrize("seed", range(25))
def test_band_and_sum_properties(seed):
    """Every timing is in band; the sum is the reachable target within rounding."""
    rng = random.Random(seed)
    n = rng.randint(1, 6)
    texts = []
    for _ in range(n):
        text = words(rng.randint(1, 40))
        if rng.random() < 0.3:
            text += "!"
        if rng.random() < 0.2:
            text += " call now"
        texts.append(text)

    plan = allocate(texts)

    assert len(plan.timings) == n
    assert MIN_TARGET_DURATION <= plan.target_duration <= MAX_TARGET_DURATION
    for t in plan.timings:
        assert MIN_SEGMENT_DURATION <= t <= MAX_SEGMENT_DURATION
        assert round(t, 1) == t

    reachable = min(max(plan.target_duration, n * MIN_SEGMENT_DURATION), n * MAX_SEGMENT_DURATION)
    assert plan.raw_sum == pytest.approx(reachable, abs=0.05 * n + 1e-9)


class TestDistribute:
    """Test the in-band proportional split."""

    def test_mixed_over_and_under_band_hits_total(self):
        # Three heavy segments overflow the band while two light ones sit at the floor
        timings = _distribute([4.8, 2.0, 23.1, 26.06, 21.94], 40.0)

        assert sum(timings) == pytest.approx(40.0)
        assert all(MIN_SEGMENT_DURATION <= t <= MAX_SEGMENT_DURATION for t in timings)
        assert timings[1] == MIN_SEGMENT_DURATION
        assert timings[3] == pytest.approx(MAX_SEGMENT_DURATION)
        assert timings[2] < MAX_SEGMENT_DURATION or timings[4] < MAX_SEGMENT_DURATION

    def test_proportional_when_nothing_clamps(self):
        timings = _distribute([3.0, 4.0, 5.0], 24.0)
        assert timings == pytest.approx([6.0, 8.0, 10.0])

    def test_all_at_max(self):
        assert _distribute([2.0, 9.0], 24.0) == pytest.approx([12.0, 12.0])

    def test_all_at_min(self):
        assert _distribute([2.0, 9.0], 5.0) == pytest.approx([2.5, 2.5])

    def test_allocate_mixed_band_within_target(self):
        plan = allocate([words(6), words(1), words(26), words(32), words(27)])

        assert plan.target_duration == MAX_TARGET_DURATION
        assert plan.raw_sum == pytest.approx(MAX_TARGET_DURATION, abs=0.25)
        assert all(MIN_SEGMENT_DURATION <= t <= MAX_SEGMENT_DURATION for t in plan.timings)
