"""Paragraph segmentation of normalized words.

WHY: A scrolling transcript reads as a wall of text unless speaker turns
and long pauses open a new visual paragraph. The layout step needs to know
which word indices start a paragraph so it can add spacing there.

HOW: Two strategies:
  Utterances: the provider's utterances (often one per speaker turn) are
  shifted into clip time and mapped onto word index ranges.
  Heuristic: when no utterances exist, a long pause, or a shorter pause
  after terminal punctuation, starts a new paragraph.

RULES:
- A boundary marks a paragraph that begins a NEW block; the opening
  paragraph (word 0) never produces a boundary
- Utterance ranges: start = first word starting at/after the utterance
  start, end = last word ending at/before the utterance end; emitted only
  when start < end
- Heuristic: gap >= LONG_PAUSE_MS, or gap >= PUNCTUATED_PAUSE_MS after
  ".", "?" or "!" (optionally followed by closing quotes/brackets)
- Boundaries are returned in ascending word order
"""

from __future__ import annotations

import bisect
import enum
import logging
import re
from typing import List, Optional, Sequence

from caption_sync import config
from caption_sync.api.models import SttUtterance
from caption_sync.core.ir import ClipWindow, ParagraphBoundary, TimeBase, Word

logger = logging.getLogger(__name__)

# Terminal punctuation, optionally followed by closing quotes/brackets.
_TERMINAL_PUNCT_RE = re.compile(r"[.?!][\"')\]]*$")


class ParagraphStrategy(str, enum.Enum):
    """Which segmentation strategy to apply."""

    AUTO = "auto"
    UTTERANCES = "utterances"
    HEURISTIC = "heuristic"


def ends_sentence(text: str) -> bool:
    """True if text ends in terminal punctuation (closing quotes allowed)."""
    return bool(_TERMINAL_PUNCT_RE.search(text.strip()))


def paragraphs_from_utterances(
    utterances: Sequence[SttUtterance],
    words: Sequence[Word],
    clip: ClipWindow,
    time_base: TimeBase,
) -> List[ParagraphBoundary]:
    """Map provider utterances onto word index ranges.

    Args:
        utterances: Provider utterances in provider time.
        words: Normalized, sorted clip-relative words.
        clip: The clip the words were normalized against.
        time_base: Clock the utterance timestamps are on.

    Returns:
        One ParagraphBoundary per utterance that opens a new paragraph.
    """
    if not words:
        return []

    offset = clip.offset_for(time_base)
    starts = [w.start_ms for w in words]
    last_idx = len(words) - 1

    boundaries = []  # type: List[ParagraphBoundary]
    for utterance in utterances:
        u_start = utterance.start - offset
        u_end = utterance.end - offset

        start_idx = bisect.bisect_left(starts, u_start)
        end_idx = _last_word_ending_by(words, u_end)
        if end_idx is None:
            continue
        end_idx = min(end_idx, last_idx)

        if 0 < start_idx < end_idx:
            boundaries.append(ParagraphBoundary(start_idx, end_idx))

    boundaries.sort(key=lambda b: b.start_word_idx)
    return boundaries


def _last_word_ending_by(words: Sequence[Word], end_ms: float) -> Optional[int]:
    """Index of the last word with end_ms <= end_ms, or None."""
    found = None
    for i, word in enumerate(words):
        if word.end_ms <= end_ms:
            found = i
        elif word.start_ms > end_ms:
            break
    return found


def detect_paragraphs(words: Sequence[Word]) -> List[ParagraphBoundary]:
    """Synthesize paragraph boundaries from pauses and punctuation.

    Each boundary spans from its start word to the word before the next
    boundary (or the last word).
    """
    starts = []  # type: List[int]
    for i in range(1, len(words)):
        prev = words[i - 1]
        gap = words[i].start_ms - prev.end_ms

        long_pause = gap >= config.LONG_PAUSE_MS
        punctuated_pause = gap >= config.PUNCTUATED_PAUSE_MS and ends_sentence(prev.text)
        if long_pause or punctuated_pause:
            starts.append(i)

    boundaries = []  # type: List[ParagraphBoundary]
    for n, start in enumerate(starts):
        end = starts[n + 1] - 1 if n + 1 < len(starts) else len(words) - 1
        boundaries.append(ParagraphBoundary(start, end))
    return boundaries


def segment_paragraphs(
    words: Sequence[Word],
    utterances: Sequence[SttUtterance],
    clip: ClipWindow,
    *,
    time_base: TimeBase,
    strategy: ParagraphStrategy = ParagraphStrategy.AUTO,
) -> List[ParagraphBoundary]:
    """Pick a strategy and compute paragraph boundaries.

    RULES:
    - AUTO uses utterances when the provider returned any, else heuristic
    - UTTERANCES with no utterances yields [] (no guessing)
    """
    strategy = ParagraphStrategy(strategy)
    if strategy is ParagraphStrategy.AUTO:
        strategy = ParagraphStrategy.UTTERANCES if utterances else ParagraphStrategy.HEURISTIC

    if strategy is ParagraphStrategy.UTTERANCES:
        boundaries = paragraphs_from_utterances(utterances, words, clip, time_base)
    else:
        boundaries = detect_paragraphs(words)

    logger.debug("Segmented %d words into %d paragraph breaks (%s)",
                 len(words), len(boundaries), strategy.value)
    return boundaries
