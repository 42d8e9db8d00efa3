"""Anchor building and the time → scroll-offset interpolation map.

WHY: The scroll controller asks "where should the transcript be at time
t?" up to sixty times a second. Answering that from words and lines on
every frame would allocate and search far too much. Instead, the line
layout is reduced once to a short list of (time, y) anchors, one per
visual line, and frames only interpolate between two of them.

HOW: build_line_anchors() walks the words and emits an anchor wherever the
line (y offset) changes, a closing anchor at the end of the last word, and
a synthetic settle anchor SETTLE_MS later at the full content height so
the view keeps gliding to the end after speech stops. Anchors repeating
the previous time or offset are dropped. build_time_offset_map() freezes
the anchors into two parallel tuples. TimeOffsetMap.offset_at() binary
searches the bracketing pair and interpolates linearly.

RULES:
- times are strictly ascending, offsets non-decreasing
- A TimeOffsetMap is immutable; recomputation builds a new one and the
  consumer swaps the reference (no locking needed for readers)
- Non-monotonic anchors raise NonMonotonicAnchorsError in strict mode and
  are clamped to the last valid anchor otherwise
- offset_at() clamps outside [times[0], times[-1]] and returns 0.0 for
  an empty map
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from caption_sync import config
from caption_sync.core.ir import Anchor, Word

logger = logging.getLogger(__name__)


class NonMonotonicAnchorsError(AssertionError):
    """Anchor times are not strictly ascending, or offsets go backwards.

    WHY: This always indicates a defect upstream (unsorted words, a broken
    layout). In development it must be loud.
    """

    def __init__(self, index: int, previous: Anchor, current: Anchor) -> None:
        super().__init__(
            "Anchor {} ({:.1f} ms, {:.1f}) does not follow ({:.1f} ms, {:.1f})".format(
                index, current.time_ms, current.y_top, previous.time_ms, previous.y_top
            )
        )
        self.index = index


def build_line_anchors(
    words: Sequence[Word],
    y_by_word_index: Sequence[float],
    total_height: float,
) -> List[Anchor]:
    """Build deduplicated line anchors for the given word layout.

    Args:
        words: Normalized clip-relative words.
        y_by_word_index: Line-top y offset of each word (parallel to words).
        total_height: Height of the laid-out transcript.

    Returns:
        Anchors in emission order, before any monotonicity check.
    """
    if not words:
        return []

    anchors = []  # type: List[Anchor]
    current_y = None  # type: Optional[float]
    for i, word in enumerate(words):
        y = _y_at(y_by_word_index, i)
        if y != current_y:
            anchors.append(Anchor(float(word.start_ms), y))
            current_y = y

    last_word = words[-1]
    anchors.append(Anchor(float(last_word.end_ms), _y_at(y_by_word_index, len(words) - 1)))
    anchors.append(Anchor(anchors[-1].time_ms + config.SETTLE_MS, float(total_height)))

    deduped = []  # type: List[Anchor]
    for anchor in anchors:
        if deduped:
            prev = deduped[-1]
            if anchor.time_ms == prev.time_ms or anchor.y_top == prev.y_top:
                continue
        deduped.append(anchor)
    return deduped


def _y_at(y_by_word_index: Sequence[float], i: int) -> float:
    if i < len(y_by_word_index) and y_by_word_index[i] is not None:
        return float(y_by_word_index[i])
    return 0.0


def _enforce_monotonic(anchors: List[Anchor], strict: bool) -> List[Anchor]:
    """Check strict time order and non-decreasing offsets.

    In strict mode the first violation raises; otherwise offending anchors
    are dropped (time) or clamped (offset) against the last valid anchor.
    """
    valid = []  # type: List[Anchor]
    violations = 0
    for i, anchor in enumerate(anchors):
        if not valid:
            valid.append(anchor)
            continue
        prev = valid[-1]
        if anchor.time_ms <= prev.time_ms or anchor.y_top < prev.y_top:
            if strict:
                raise NonMonotonicAnchorsError(i, prev, anchor)
            violations += 1
            if anchor.time_ms <= prev.time_ms:
                continue
            anchor = Anchor(anchor.time_ms, prev.y_top)
        valid.append(anchor)

    if violations:
        logger.error("Clamped %d non-monotonic anchors out of %d", violations, len(anchors))
    return valid


@dataclass(frozen=True)
class TimeOffsetMap:
    """Immutable piecewise-linear mapping from clip time to scroll offset."""

    times: Tuple[float, ...] = ()
    offsets: Tuple[float, ...] = ()

    def __post_init__(self) -> None:
        if len(self.times) != len(self.offsets):
            raise ValueError("times and offsets must have the same length")

    def __len__(self) -> int:
        return len(self.times)

    @property
    def is_empty(self) -> bool:
        return not self.times

    @classmethod
    def from_anchors(cls, anchors: Sequence[Anchor]) -> TimeOffsetMap:
        return cls(
            times=tuple(float(a.time_ms) for a in anchors),
            offsets=tuple(float(a.y_top) for a in anchors),
        )

    def anchors(self) -> List[Anchor]:
        return [Anchor(t, y) for t, y in zip(self.times, self.offsets)]

    def offset_at(self, t_ms: float) -> float:
        """Interpolated scroll offset at clip time t_ms.

        Safe to call every frame: one bisect, a handful of float ops.
        """
        times = self.times
        offsets = self.offsets
        n = len(times)
        if n == 0:
            return 0.0
        if t_ms <= times[0]:
            return offsets[0]
        if t_ms >= times[n - 1]:
            return offsets[n - 1]

        # times[idx] <= t_ms < times[idx + 1]
        idx = bisect.bisect_right(times, t_ms) - 1
        t1 = times[idx]
        t2 = times[idx + 1]
        y1 = offsets[idx]
        y2 = offsets[idx + 1]
        if t2 == t1:
            return y1
        return y1 + (t_ms - t1) / (t2 - t1) * (y2 - y1)

    __call__ = offset_at


def build_time_offset_map(
    words: Sequence[Word],
    y_by_word_index: Sequence[float],
    total_height: float,
    strict: Optional[bool] = None,
) -> TimeOffsetMap:
    """Build the immutable time → offset map for a laid-out transcript.

    RULES:
    - strict defaults to config.STRICT (CAPTION_SYNC_STRICT)
    - Returns an empty map when there are no words
    """
    if strict is None:
        strict = config.STRICT
    anchors = build_line_anchors(words, y_by_word_index, total_height)
    anchors = _enforce_monotonic(anchors, strict)
    return TimeOffsetMap.from_anchors(anchors)
