"""Transcript normalization: provider payload → clip-relative Word list.

WHY: STT output is noisy. Punctuation arrives as standalone tokens,
hyphenated words arrive split around a bare dash, words straddle the clip
start, and timestamps may be on the episode clock or the clip clock
depending on how the request was made. The display needs one clean,
sorted, clip-relative word list.

HOW: A fixed sequence of passes:
  1. Flatten: prefer the flat ``words`` list, otherwise concatenate the
     words of each utterance in utterance order.
  2. Shift: subtract the clip start when the payload is on the source
     clock (TimeBase.SOURCE); leave times alone for TimeBase.CLIP.
  3. Boundary policy: DROP words with a negative start or end, or CLAMP
     them into [0, clip duration].
  4. Punctuation merge: tokens with no word characters are appended to
     the preceding word, extending its end time.
  5. Hyphen collapse: a bare dash between two words joins them into one.
Merge runs before collapse, and leaves bare dashes alone, so a dash is
never absorbed as ordinary punctuation.

RULES:
- Never raises on payload content; empty or malformed input yields []
- The time base is a required keyword argument, never inferred
- Output is sorted by start_ms, with end_ms > start_ms under CLAMP
- Leading punctuation with no preceding word is dropped
- Dashes without a word on both sides are dropped
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional, Union

from caption_sync.api.models import SttResponse, SttWord
from caption_sync.core.ir import (
    BoundaryPolicy,
    ClipTranscript,
    ClipWindow,
    TimeBase,
    Word,
)
from caption_sync.core.segmenter import ParagraphStrategy, segment_paragraphs

logger = logging.getLogger(__name__)

# Tokens with no word characters at all (".", "?!", "...", '"').
_NO_WORD_CHARS_RE = re.compile(r"^\W*$")

# Bare dashes that join the neighbouring words.
_DASHES = frozenset({"-", "–", "—"})
_DASH_CHARS = "-–—"

Payload = Union[SttResponse, dict, None]


def _as_response(payload: Any) -> SttResponse:
    if isinstance(payload, SttResponse):
        return payload
    return SttResponse.from_dict(payload)


def _flatten(response: SttResponse) -> List[SttWord]:
    """Return the provider word list, preferring the flat list."""
    if response.words:
        return list(response.words)
    flat = []  # type: List[SttWord]
    for utterance in response.utterances:
        flat.extend(utterance.words)
    return flat


def _shift_and_bound(
    raw_words: Iterable[SttWord],
    clip: ClipWindow,
    time_base: TimeBase,
    policy: BoundaryPolicy,
) -> List[Word]:
    """Shift provider words into clip time and apply the boundary policy."""
    offset = clip.offset_for(time_base)
    duration = clip.duration_ms
    policy = BoundaryPolicy(policy)

    words = []  # type: List[Word]
    dropped = 0
    for raw in raw_words:
        if not raw.text:
            continue
        start_ms = int(round(raw.start - offset))
        end_ms = int(round(raw.end - offset))
        if end_ms < start_ms:
            dropped += 1
            continue

        if policy is BoundaryPolicy.DROP:
            if start_ms < 0 or end_ms < 0:
                dropped += 1
                continue
        else:
            start_ms = max(0, min(duration, start_ms))
            end_ms = max(0, min(duration, end_ms))
            if end_ms <= start_ms:
                dropped += 1
                continue

        words.append(Word(text=raw.text, start_ms=start_ms, end_ms=end_ms))

    if dropped:
        logger.debug("Dropped %d words outside clip (%s policy)", dropped, policy.value)

    # Stable: equal starts keep provider order
    words.sort(key=lambda w: w.start_ms)
    return words


def merge_punctuation(words: List[Word]) -> List[Word]:
    """Append punctuation-only tokens to the preceding word.

    Bare dashes are passed through untouched for collapse_hyphens().
    """
    merged = []  # type: List[Word]
    for word in words:
        if word.text in _DASHES or not _NO_WORD_CHARS_RE.match(word.text):
            merged.append(Word(word.text, word.start_ms, word.end_ms))
            continue

        target = _last_non_dash(merged)
        if target is None:
            # Standalone punctuation at the very start is dropped
            continue
        target.text += word.text
        target.end_ms = max(target.end_ms, word.end_ms)
    return merged


def _last_non_dash(words: List[Word]) -> Optional[Word]:
    for word in reversed(words):
        if word.text not in _DASHES:
            return word
    return None


def collapse_hyphens(words: List[Word]) -> List[Word]:
    """Join ``word - word`` token triples into a single word."""
    collapsed = []  # type: List[Word]
    i = 0
    while i < len(words):
        current = words[i]
        if current.text not in _DASHES:
            collapsed.append(Word(current.text, current.start_ms, current.end_ms))
            i += 1
            continue

        nxt = words[i + 1] if i + 1 < len(words) else None
        if collapsed and nxt is not None and nxt.text not in _DASHES:
            prev = collapsed[-1]
            prev.text = prev.text.rstrip(_DASH_CHARS) + nxt.text
            prev.end_ms = max(prev.end_ms, nxt.end_ms)
            i += 2
            continue

        logger.debug("Dropping dangling dash at %d ms", current.start_ms)
        i += 1
    return collapsed


def normalize_words(
    payload: Payload,
    clip: ClipWindow,
    *,
    time_base: TimeBase,
    policy: BoundaryPolicy = BoundaryPolicy.DROP,
) -> List[Word]:
    """Turn a raw STT payload into the canonical clip-relative word list.

    WHY: Every consumer (layout, anchors, captions) needs the same clean
    word sequence; doing the cleanup once keeps them consistent.

    HOW: Parses the payload leniently, then runs the flatten, shift,
    boundary, punctuation-merge and hyphen-collapse passes in order.

    RULES:
    - Returns [] for empty or malformed payloads ("no captions available")
    - time_base must be given explicitly
    - policy defaults to DROP

    Args:
        payload: Provider JSON dict or an already parsed SttResponse.
        clip: The selected clip on the source timeline.
        time_base: Clock the payload timestamps are on.
        policy: What to do with words that cross the clip start.

    Returns:
        Sorted list of Word objects in clip-relative milliseconds.
    """
    response = _as_response(payload)
    raw_words = _flatten(response)
    if not raw_words:
        logger.warning("STT payload has no words; no captions available")
        return []

    words = _shift_and_bound(raw_words, clip, TimeBase(time_base), policy)
    words = merge_punctuation(words)
    words = collapse_hyphens(words)

    logger.debug(
        "Normalized %d provider words into %d words for clip %d-%d ms",
        len(raw_words), len(words), clip.clip_start_ms, clip.clip_end_ms,
    )
    return words


def build_clip_transcript(
    payload: Payload,
    clip: ClipWindow,
    *,
    time_base: TimeBase,
    policy: BoundaryPolicy = BoundaryPolicy.DROP,
    strategy: ParagraphStrategy = ParagraphStrategy.AUTO,
) -> ClipTranscript:
    """Normalize a payload and segment it into paragraphs.

    RULES:
    - strategy defaults to ParagraphStrategy.AUTO (utterances when present)
    - speaker is taken from the first utterance, if any
    """
    response = _as_response(payload)
    words = normalize_words(response, clip, time_base=time_base, policy=policy)
    paragraphs = segment_paragraphs(
        words,
        response.utterances,
        clip,
        time_base=time_base,
        strategy=strategy,
    )
    speaker = response.utterances[0].speaker if response.utterances else None
    return ClipTranscript(words=words, paragraphs=paragraphs, speaker=speaker)
