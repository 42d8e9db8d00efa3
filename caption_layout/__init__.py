"""Caption line-layout library for the scrolling transcript.

WHY: The sync engine needs line offsets for every word but should not care
how text is measured. This package is that measurement provider, kept as a
separate library with its own Word type so it can be reused by the frame
renderer or replaced by a platform text-measurement backend.

HOW: The single public entry point is measure_transcript(words, theme). It
sanitizes nothing itself; callers pass a theme from make_safe_theme().

RULES:
- measure_transcript() is the ONLY public API for producing layouts
- It is a pure function of (words, theme) apart from font loading
- Themes are frozen; never mutate DEFAULT_THEME or PRESETS entries
"""

from typing import List, Optional, Union

from .core import measure, one_word_per_line
from .models import CaptionTheme, LayoutResult, Line, Word
from .presets import DEFAULT_THEME, PRESETS, make_safe_theme

__all__ = [
    "measure_transcript",
    "one_word_per_line",
    "make_safe_theme",
    "CaptionTheme",
    "LayoutResult",
    "Line",
    "Word",
    "DEFAULT_THEME",
    "PRESETS",
]


def measure_transcript(
    words: List[Word],
    theme: Optional[Union[CaptionTheme, str]] = None,
) -> LayoutResult:
    """Lay out words into wrapped lines and compute per-word y offsets.

    Args:
        words: Word objects from caption_layout.models.
        theme: A CaptionTheme, a preset name, or None for DEFAULT_THEME.

    Returns:
        LayoutResult; empty when words is empty.

    Raises:
        ValueError: If theme is a string that names no preset.
    """
    if theme is None:
        theme = DEFAULT_THEME
    elif isinstance(theme, str):
        if theme not in PRESETS:
            raise ValueError(
                "Unknown preset '{}'. Available: {}".format(theme, ", ".join(PRESETS.keys()))
            )
        theme = PRESETS[theme]
    return measure(words, theme)
