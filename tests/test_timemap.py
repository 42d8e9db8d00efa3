"""Tests for anchor building and the time-to-offset map.

WHY: The map is evaluated every frame. If it ever goes backwards the
transcript visibly jumps up; if it extrapolates past its ends the view
scrolls into empty space.

HOW: Anchor construction is checked on small layouts with known line
offsets; the map's monotonicity and clamping are checked by sampling many
times across and beyond its range.
"""

from __future__ import annotations

import logging

import pytest

from caption_sync import config
from caption_sync.core.ir import Anchor
from caption_sync.core.timemap import (
    NonMonotonicAnchorsError,
    TimeOffsetMap,
    build_line_anchors,
    build_time_offset_map,
)


@pytest.fixture
def three_lines(make_words):
    """Six words on three lines, 28 dp apart."""
    words = make_words([
        ("one", 1000, 1400), ("two", 1400, 1800),
        ("three", 2000, 2400), ("four", 2400, 2800),
        ("five", 3000, 3400), ("six", 3400, 3800),
    ])
    y = [0, 0, 28, 28, 56, 56]
    return words, y, 84.0


class TestBuildLineAnchors:

    def test_one_anchor_per_line_plus_settle(self, three_lines):
        words, y, total = three_lines
        anchors = build_line_anchors(words, y, total)
        assert anchors == [
            Anchor(1000, 0), Anchor(2000, 28), Anchor(3000, 56),
            Anchor(3800 + config.SETTLE_MS, 84),
        ]

    def test_single_word_gets_start_and_settle(self, make_words):
        words = make_words([("a", 0, 500)])
        anchors = build_line_anchors(words, [10], 38.0)
        assert anchors == [Anchor(0, 10), Anchor(500 + config.SETTLE_MS, 38)]

    def test_settle_uses_config(self, three_lines, monkeypatch):
        monkeypatch.setattr(config, "SETTLE_MS", 500)
        words, y, total = three_lines
        assert build_line_anchors(words, y, total)[-1] == Anchor(4300, 84)

    def test_empty_words(self):
        assert build_line_anchors([], [], 0.0) == []

    def test_duplicate_times_dropped(self, make_words):
        # Two lines starting at the same instant
        words = make_words([("a", 1000, 1000), ("b", 1000, 1500)])
        anchors = build_line_anchors(words, [0, 28], 56.0)
        times = [a.time_ms for a in anchors]
        assert len(times) == len(set(times))


class TestMonotonicity:

    @pytest.fixture
    def time_map(self, three_lines):
        words, y, total = three_lines
        return build_time_offset_map(words, y, total)

    def test_non_decreasing_everywhere(self, time_map):
        samples = [time_map(t) for t in range(0, 7000, 7)]
        assert all(a <= b for a, b in zip(samples, samples[1:]))

    def test_times_strictly_ascending(self, time_map):
        assert all(a < b for a, b in zip(time_map.times, time_map.times[1:]))

    def test_clamped_before_first_anchor(self, time_map):
        for t in (-1e9, -1, 0, 999, 1000):
            assert time_map(t) == time_map.offsets[0]

    def test_clamped_after_last_anchor(self, time_map):
        last = time_map.times[-1]
        for t in (last, last + 1, last + 1e9):
            assert time_map(t) == time_map.offsets[-1]

    def test_interpolates_linearly(self, time_map):
        assert time_map(1500) == pytest.approx(14.0)
        assert time_map(2500) == pytest.approx(42.0)

    def test_exact_anchor_times(self, time_map):
        assert time_map(2000) == 28
        assert time_map(3000) == 56


class TestNonMonotonicAnchors:
    """Upstream defects raise in strict mode and are clamped otherwise."""

    @pytest.fixture
    def backwards(self, make_words):
        # Line offsets go down at the third word
        words = make_words([("a", 0, 100), ("b", 200, 300), ("c", 400, 500)])
        return words, [0, 28, 10], 56.0

    def test_strict_raises(self, backwards):
        words, y, total = backwards
        with pytest.raises(NonMonotonicAnchorsError):
            build_time_offset_map(words, y, total, strict=True)

    def test_strict_from_config(self, backwards, monkeypatch):
        monkeypatch.setattr(config, "STRICT", True)
        words, y, total = backwards
        with pytest.raises(NonMonotonicAnchorsError):
            build_time_offset_map(words, y, total)

    def test_lenient_clamps_and_logs(self, backwards, caplog):
        words, y, total = backwards
        with caplog.at_level(logging.ERROR, logger="caption_sync.core.timemap"):
            time_map = build_time_offset_map(words, y, total, strict=False)
        assert list(time_map.offsets) == sorted(time_map.offsets)
        assert "non-monotonic" in caplog.text

    def test_is_assertion_error(self):
        assert issubclass(NonMonotonicAnchorsError, AssertionError)


class TestTimeOffsetMap:

    def test_empty_map_returns_zero(self):
        assert TimeOffsetMap()(1234) == 0.0
        assert TimeOffsetMap().is_empty

    def test_mismatched_lengths_rejected(self):
        with pytest.raises(ValueError):
            TimeOffsetMap(times=(0.0, 1.0), offsets=(0.0,))

    def test_immutable(self):
        time_map = TimeOffsetMap(times=(0.0,), offsets=(5.0,))
        with pytest.raises(AttributeError):
            time_map.times = (1.0,)

    def test_single_anchor(self):
        time_map = TimeOffsetMap(times=(100.0,), offsets=(5.0,))
        assert time_map(0) == 5.0
        assert time_map(1000) == 5.0

    def test_anchor_round_trip(self):
        anchors = [Anchor(0.0, 0.0), Anchor(100.0, 28.0)]
        assert TimeOffsetMap.from_anchors(anchors).anchors() == anchors
