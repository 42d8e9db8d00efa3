"""Per-frame scroll controller for the synchronized transcript.

WHY: The audio clock advances on its own and may jump (user seeks). The
transcript must follow it at display refresh rate without visible snapping
and without ever blocking the render loop.

HOW: Each tick maps the playback time to a target offset through the
current TimeOffsetMap, blends it with the current scroll position
(exponential smoothing), clamps it to the scrollable range, and finally
rate-limits the move to DRIFT_STEP_PX when the remaining distance exceeds
DRIFT_THRESHOLD_PX. The result is committed through an imperative
``scroll_to`` callback supplied by the render target.

RULES:
- tick() never blocks and never raises on missing inputs; with no map
  (layout not measured yet) or after detach() it is a no-op
- Per tick, |new - old| <= DRIFT_STEP_PX whenever the blended target is
  more than DRIFT_THRESHOLD_PX away
- The map and the geometry are replaced wholesale, never mutated
- No logging on the tick path
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional

from caption_sync import config
from caption_sync.core.timemap import TimeOffsetMap


@dataclass(frozen=True)
class ScrollGeometry:
    """Measured viewport and content sizes for one layout.

    Padding of half a viewport above and below the text lets the first
    and last lines reach the vertical centre.
    """

    viewport_height: float
    content_height: float
    pad_top: float
    line_height: float

    @classmethod
    def from_layout(
        cls,
        total_height: float,
        viewport_height: float,
        line_height: float,
    ) -> ScrollGeometry:
        viewport_height = max(0.0, float(viewport_height))
        pad_top = float(math.floor(viewport_height * 0.5))
        pad_bottom = pad_top + math.floor(viewport_height * 0.5)
        return cls(
            viewport_height=viewport_height,
            content_height=float(total_height) + pad_top + pad_bottom,
            pad_top=pad_top,
            line_height=float(line_height),
        )

    @property
    def max_scroll(self) -> float:
        return max(0.0, self.content_height - self.viewport_height)

    @property
    def base_offset(self) -> float:
        """Shift that centres the active line once the viewport is known."""
        if self.viewport_height <= 0:
            return 0.0
        return self.pad_top - (self.viewport_height / 2 - self.line_height / 2)


def blended_target(y_map: float, current: float, geometry: ScrollGeometry) -> float:
    """Smoothed, clamped target before drift correction."""
    blend = config.SCROLL_BLEND
    target = blend * current + (1 - blend) * y_map + geometry.base_offset
    return min(max(target, 0.0), geometry.max_scroll)


def _limit(target: float, current: float) -> float:
    drift = target - current
    if abs(drift) > config.DRIFT_THRESHOLD_PX:
        return current + math.copysign(min(config.DRIFT_STEP_PX, abs(drift)), drift)
    return target


def step_scroll(y_map: float, current: float, geometry: ScrollGeometry) -> float:
    """Compute the next scroll offset from the mapped position.

    Args:
        y_map: Offset of the active line from the time map.
        current: Currently rendered scroll offset.
        geometry: Viewport/content measurements.

    Returns:
        The offset to commit this frame.
    """
    return _limit(blended_target(y_map, current, geometry), current)


class ScrollController:
    """Drives the transcript scroll offset from a playback clock.

    WHY: Keeps frame-path state (current offset, drift statistics) in one
    object owned by the view, while the map is built elsewhere and handed
    over by reference.

    HOW: Call set_map()/set_geometry() whenever a new layout is ready,
    then tick(now_ms) once per display refresh.

    RULES:
    - scroll_to receives every committed offset
    - drift_count counts ticks whose move was rate-limited
    - last_drift is the signed distance to target on the last limited tick
    """

    def __init__(
        self,
        scroll_to: Callable[[float], None],
        time_map: Optional[TimeOffsetMap] = None,
        geometry: Optional[ScrollGeometry] = None,
        initial_offset: float = 0.0,
    ) -> None:
        self._scroll_to = scroll_to
        self._map = time_map
        self._geometry = geometry
        self.scroll_y = float(initial_offset)
        self.drift_count = 0
        self.last_drift = 0.0
        self.attached = True

    @property
    def time_map(self) -> Optional[TimeOffsetMap]:
        return self._map

    @property
    def geometry(self) -> Optional[ScrollGeometry]:
        return self._geometry

    def set_map(self, time_map: Optional[TimeOffsetMap]) -> None:
        """Swap in a freshly built map (or None to pause)."""
        self._map = time_map

    def set_geometry(self, geometry: Optional[ScrollGeometry]) -> None:
        self._geometry = geometry

    @property
    def ready(self) -> bool:
        return (
            self.attached
            and self._map is not None
            and not self._map.is_empty
            and self._geometry is not None
        )

    def tick(self, now_ms: float) -> Optional[float]:
        """Advance one frame; return the committed offset or None if inert."""
        if not self.ready:
            return None

        current = self.scroll_y
        target = blended_target(self._map.offset_at(now_ms), current, self._geometry)
        if abs(target - current) > config.DRIFT_THRESHOLD_PX:
            self.drift_count += 1
            self.last_drift = target - current
        new_offset = _limit(target, current)

        self.scroll_y = new_offset
        self._scroll_to(new_offset)
        return new_offset

    def detach(self) -> None:
        """Stop reacting to ticks; the view is gone."""
        self.attached = False
