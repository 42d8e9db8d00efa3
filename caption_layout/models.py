"""Data models for the caption line-layout library.

WHY: Laying out a transcript needs only the word text and whether a word
opens a new paragraph; it must not depend on the engine's IR so that each
side can evolve independently. These dataclasses are the library's input
and output types.

HOW: Word carries text plus the paragraph flag, CaptionTheme carries the
typography that affects measurement, Line and LayoutResult describe the
wrapped result.

RULES:
- Word.text is never modified by the layout code
- is_paragraph_start marks the first word of a new paragraph (never the
  very first word, which always starts a paragraph)
- All sizes are display points (dp)
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class Word:
    """A single word to be placed on a line.

    Attributes:
        text: The word text (never modified).
        is_paragraph_start: True if this word opens a new paragraph.
    """
    text: str
    is_paragraph_start: bool = False


@dataclass(frozen=True)
class CaptionTheme:
    """Typography settings that determine where lines wrap."""
    font_family: str = "System"
    font_size: float = 22
    line_height: float = 28
    max_width_dp: float = 320
    paragraph_spacing_dp: float = 8
    text_color: str = "#ffffff"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Line:
    """One wrapped line: inclusive word index range and its text."""
    text: str
    start_word_idx: int
    end_word_idx: int
    paragraph_start: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "startWordIdx": self.start_word_idx,
            "endWordIdx": self.end_word_idx,
            "paragraphStart": self.paragraph_start,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Line":
        return cls(
            text=data["text"],
            start_word_idx=data["startWordIdx"],
            end_word_idx=data["endWordIdx"],
            paragraph_start=data.get("paragraphStart", False),
        )


@dataclass
class LayoutResult:
    """Measured layout of a whole transcript.

    Attributes:
        lines: Wrapped lines in display order.
        item_heights: Height of each line (parallel to lines).
        y_by_word_index: Line-top y offset of every word.
        total_height: Height of the whole block including spacing.
    """
    lines: List[Line] = field(default_factory=list)
    item_heights: List[float] = field(default_factory=list)
    y_by_word_index: List[float] = field(default_factory=list)
    total_height: float = 0.0
