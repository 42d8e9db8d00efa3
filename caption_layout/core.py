"""Core layout logic: word measurement, greedy wrapping, and line offsets.

WHY: The scrolling transcript needs to know, before playback starts, which
visual line each word lands on and how far down that line sits. The anchor
builder turns these offsets into the time map, so the numbers here must be
deterministic for a given theme and word list.

HOW: The pipeline has three stages:
  1. measure_word_widths() measures every word once with Pillow font
     metrics, falling back to a character-count estimate when the font
     cannot be loaded.
  2. wrap_lines() packs words greedily into lines no wider than
     max_width_dp, forcing a break before every paragraph start.
  3. compute_offsets() stacks the lines, inserting paragraph spacing before
     each paragraph-start line except the first.

RULES:
- ALL functions receive the theme explicitly; there is no module state
  besides the font cache
- Word text is never modified
- A word wider than the line still gets a line of its own
- The first line always has paragraph_start=True
"""

import functools
import logging
from typing import List, Optional, Sequence, Tuple

from PIL import ImageFont

from .models import CaptionTheme, LayoutResult, Line, Word

logger = logging.getLogger(__name__)

ESTIMATED_CHAR_WIDTH = 0.6
SPACE_WIDTH = 0.3


# =============================================================================
# Measurement
# =============================================================================

@functools.lru_cache(maxsize=32)
def load_font(font_family: str, font_size: int) -> Optional[ImageFont.FreeTypeFont]:
    """Load a TrueType font by file name or path, or None if unavailable.

    Platform names like "System" never resolve to a file, which selects the
    estimate path.
    """
    try:
        return ImageFont.truetype(font_family, font_size)
    except (OSError, ValueError):
        logger.debug("Font %r not loadable, using width estimate", font_family)
        return None


def estimate_width(text: str, font_size: float) -> float:
    return len(text) * font_size * ESTIMATED_CHAR_WIDTH


def measure_word_widths(words: Sequence[Word], theme: CaptionTheme) -> List[float]:
    """Return the rendered width of every word in display points."""
    font = load_font(theme.font_family, int(round(theme.font_size)))
    if font is None:
        return [estimate_width(w.text, theme.font_size) for w in words]
    return [float(font.getlength(w.text)) for w in words]


# =============================================================================
# Wrapping
# =============================================================================

def wrap_lines(words: Sequence[Word], widths: Sequence[float], theme: CaptionTheme) -> List[Line]:
    """Greedily pack words into lines.

    Args:
        words: Words in reading order.
        widths: Width of each word (parallel to words).
        theme: Supplies max_width_dp and the font size for spacing.

    Returns:
        Lines covering every word exactly once, in order.
    """
    lines = []  # type: List[Line]
    current = []  # type: List[str]
    current_width = 0.0
    start_idx = 0
    space = theme.font_size * SPACE_WIDTH

    def flush(end_idx: int) -> None:
        lines.append(Line(
            text=" ".join(current),
            start_word_idx=start_idx,
            end_word_idx=end_idx,
            paragraph_start=not lines or words[start_idx].is_paragraph_start,
        ))

    for i, word in enumerate(words):
        gap = space if current else 0.0
        overflow = current_width + gap + widths[i] > theme.max_width_dp
        if current and (word.is_paragraph_start or overflow):
            flush(i - 1)
            current = [word.text]
            current_width = widths[i]
            start_idx = i
        else:
            current.append(word.text)
            current_width += gap + widths[i]

    if current:
        flush(len(words) - 1)
    return lines


def compute_offsets(
    lines: Sequence[Line], word_count: int, theme: CaptionTheme
) -> Tuple[List[float], List[float], float]:
    """Stack lines vertically.

    Returns:
        (item_heights, y_by_word_index, total_height)
    """
    item_heights = []  # type: List[float]
    y_by_word_index = [0.0] * word_count
    y = 0.0
    for n, line in enumerate(lines):
        if line.paragraph_start and n > 0:
            y += theme.paragraph_spacing_dp
        for idx in range(line.start_word_idx, line.end_word_idx + 1):
            y_by_word_index[idx] = y
        item_heights.append(float(theme.line_height))
        y += theme.line_height
    return item_heights, y_by_word_index, y


def measure(words: Sequence[Word], theme: CaptionTheme) -> LayoutResult:
    """Run measurement, wrapping and stacking for one transcript."""
    if not words:
        return LayoutResult()
    widths = measure_word_widths(words, theme)
    lines = wrap_lines(words, widths, theme)
    item_heights, y_by_word_index, total_height = compute_offsets(lines, len(words), theme)
    return LayoutResult(
        lines=lines,
        item_heights=item_heights,
        y_by_word_index=y_by_word_index,
        total_height=total_height,
    )


def one_word_per_line(words: Sequence[Word], theme: CaptionTheme) -> LayoutResult:
    """Fallback layout used when measurement fails."""
    lh = float(theme.line_height)
    return LayoutResult(
        lines=[
            Line(text=w.text, start_word_idx=i, end_word_idx=i, paragraph_start=(i == 0))
            for i, w in enumerate(words)
        ],
        item_heights=[lh] * len(words),
        y_by_word_index=[i * lh for i in range(len(words))],
        total_height=len(words) * lh,
    )
