"""Intermediate representation dataclasses for clip transcripts.

WHY: STT providers return loosely structured JSON whose timestamps may be
relative to the whole episode or to the clip. Every downstream stage
(segmentation, layout, anchor building, caption selection) needs the same
clean, clip-relative vocabulary. The IR is that vocabulary.

HOW: Small dataclasses, leaves first:
  Word              one displayed word with clip-relative timing
  ParagraphBoundary word index range of a paragraph that starts a new
                    visual block
  Anchor            (time, y) interpolation control point
  ClipWindow        the user-selected clip on the source timeline
  ClipTranscript    normalized words plus paragraphs for one clip
  TimeBase          which clock the provider timestamps are on
  BoundaryPolicy    what to do with words straddling the clip start

RULES:
- All times are integer milliseconds; start inclusive, end exclusive
- Word lists are sorted ascending by start_ms
- TimeBase is always passed explicitly at the STT boundary, never guessed
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from caption_sync import config

logger = logging.getLogger(__name__)


class TimeBase(str, enum.Enum):
    """Clock that provider timestamps are measured on.

    RULES:
    - SOURCE: times are relative to the episode/source audio; the clip
      start must be subtracted
    - CLIP: times are already relative to the clip start
    """

    SOURCE = "source"
    CLIP = "clip"


class BoundaryPolicy(str, enum.Enum):
    """How words that fall outside the clip after shifting are handled.

    RULES:
    - DROP: discard any word whose shifted start or end is negative
    - CLAMP: clip start/end into [0, clip duration]; discard empty spans
    """

    DROP = "drop"
    CLAMP = "clamp"


@dataclass
class Word:
    """A single displayed word in clip-relative time."""

    text: str
    start_ms: int
    end_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "startMs": self.start_ms, "endMs": self.end_ms}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Word:
        return cls(text=data["text"], start_ms=data["startMs"], end_ms=data["endMs"])


@dataclass
class ParagraphBoundary:
    """Inclusive word index range of a paragraph that starts a new block.

    The layout step adds extra vertical spacing before start_word_idx.
    """

    start_word_idx: int
    end_word_idx: int

    def to_dict(self) -> Dict[str, Any]:
        return {"startWordIdx": self.start_word_idx, "endWordIdx": self.end_word_idx}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ParagraphBoundary:
        return cls(start_word_idx=data["startWordIdx"], end_word_idx=data["endWordIdx"])


@dataclass(frozen=True)
class Anchor:
    """Interpolation control point: at time_ms the view shows y_top."""

    time_ms: float
    y_top: float


@dataclass(frozen=True)
class ClipWindow:
    """The user-selected clip, in source milliseconds.

    WHY: Clip boundaries arrive from UI sliders and URL parameters, and
    have in the past been passed in seconds or as epoch values. Building
    the window in one place catches those mistakes early.

    RULES:
    - clip_end_ms must be greater than clip_start_ms (ValueError otherwise)
    - Values are rounded to whole milliseconds
    - A start beyond SUSPICIOUS_CLIP_START_MS is logged, not rejected
    """

    clip_start_ms: int
    clip_end_ms: int

    def __post_init__(self) -> None:
        start = int(round(self.clip_start_ms))
        end = int(round(self.clip_end_ms))
        if end <= start:
            raise ValueError(
                "Invalid clip: end ({}) <= start ({})".format(end, start)
            )
        if start > config.SUSPICIOUS_CLIP_START_MS:
            logger.warning("Suspicious clip start %d ms (epoch value?)", start)
        object.__setattr__(self, "clip_start_ms", start)
        object.__setattr__(self, "clip_end_ms", end)

    @property
    def duration_ms(self) -> int:
        return self.clip_end_ms - self.clip_start_ms

    def offset_for(self, time_base: TimeBase) -> int:
        """Milliseconds to subtract from provider times on the given clock."""
        if TimeBase(time_base) is TimeBase.SOURCE:
            return self.clip_start_ms
        return 0


@dataclass
class ClipTranscript:
    """Normalized words and paragraph boundaries for one clip."""

    words: List[Word] = field(default_factory=list)
    paragraphs: List[ParagraphBoundary] = field(default_factory=list)
    speaker: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.words
