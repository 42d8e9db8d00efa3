"""Theme presets and theme sanitizing for caption layout.

WHY: Themes arrive from app settings, URL parameters and HTTP requests,
and have been seen with NaN font sizes and zero widths before the
container was measured. Measuring with such values produces absurd
layouts, so every theme passes through make_safe_theme() first.

HOW: DEFAULT_THEME holds the app's default typography. PRESETS maps names
to themes for callers that select by name. make_safe_theme() merges
overrides onto the default, replaces non-finite numbers with defaults,
and caps the wrap width against the container.

RULES:
- Presets are frozen dataclasses; use dataclasses.replace() for variants
- Width is capped at MAX_WIDTH_DP and at 82% of a known container width
- A non-positive width falls back to the default width
"""

import dataclasses
import math
from typing import Any, Dict, Mapping, Optional

from .models import CaptionTheme

MAX_WIDTH_DP = 360
CONTAINER_WIDTH_RATIO = 0.82

# Default look used by the recording screen
DEFAULT_THEME = CaptionTheme(
    font_family="System",
    font_size=22,
    line_height=28,
    max_width_dp=320,
    paragraph_spacing_dp=8,
    text_color="#ffffff",
)

# Larger type for full-screen vertical video
LARGE_THEME = dataclasses.replace(
    DEFAULT_THEME,
    font_size=28,
    line_height=36,
    paragraph_spacing_dp=12,
)

PRESETS: Dict[str, CaptionTheme] = {
    "default": DEFAULT_THEME,
    "large": LARGE_THEME,
}

_NUMERIC_FIELDS = ("font_size", "line_height", "max_width_dp", "paragraph_spacing_dp")


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def make_safe_theme(
    theme: Optional[Mapping[str, Any]] = None,
    container_width: Optional[float] = None,
    base: CaptionTheme = DEFAULT_THEME,
) -> CaptionTheme:
    """Return a theme whose numeric fields are all finite and usable.

    Args:
        theme: Partial overrides (dict or CaptionTheme), or None.
        container_width: Measured container width, if known.
        base: Theme supplying defaults for missing or invalid fields.
    """
    if isinstance(theme, CaptionTheme):
        overrides = theme.to_dict()
    else:
        overrides = dict(theme or {})

    values = base.to_dict()
    for name in _NUMERIC_FIELDS:
        if _finite(overrides.get(name)):
            values[name] = overrides[name]
    for name in ("font_family", "text_color"):
        if isinstance(overrides.get(name), str) and overrides[name]:
            values[name] = overrides[name]

    if values["max_width_dp"] <= 0:
        values["max_width_dp"] = base.max_width_dp
    if _finite(container_width) and container_width > 0:
        values["max_width_dp"] = min(CONTAINER_WIDTH_RATIO * container_width, values["max_width_dp"])
    values["max_width_dp"] = min(values["max_width_dp"], MAX_WIDTH_DP)

    return CaptionTheme(**values)
