"""Caption preparation: from STT payload to a ready-to-scroll layout.

WHY: Everything the frame path needs (normalized words, paragraph
boundaries, measured lines, the time map) is derived once per clip and
theme. This module wires the stages together, consults the layout cache,
and hands the finished map to the scroll controller without ever running
on the frame path itself.

HOW: prepare_captions() is the synchronous pipeline:
  1. make_safe_theme() sanitizes the theme and caps the wrap width
  2. the cache is consulted with a key built from clip and theme
  3. on a miss: normalize, segment, measure (one word per line if the
     layout provider fails), build the time map, write the cache
CaptionPreparer runs that pipeline in a worker thread and applies
cancellation-by-ignoring: each call takes a generation number and only
the newest generation may swap its map into the controller.

RULES:
- prepare_captions() is stateless and re-entrant
- Cache failures degrade to recompute (handled inside LayoutCache)
- A superseded preparation returns None and touches nothing
- Empty transcripts are not cached
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

from caption_layout import CaptionTheme, LayoutResult, make_safe_theme, measure_transcript, one_word_per_line
from caption_sync.adapters.layout_adapter import words_to_layout_words
from caption_sync.core.cache import CaptionLayout, LayoutCache, create_cache_key, create_theme_fingerprint
from caption_sync.core.ir import BoundaryPolicy, ClipWindow, TimeBase
from caption_sync.core.normalizer import build_clip_transcript
from caption_sync.core.scroller import ScrollController, ScrollGeometry
from caption_sync.core.segmenter import ParagraphStrategy
from caption_sync.core.timemap import build_time_offset_map

logger = logging.getLogger(__name__)

ThemeInput = Union[CaptionTheme, Mapping[str, Any], None]


@dataclass(frozen=True)
class ClipRequest:
    """Which clip of which episode to prepare."""

    episode_id: str
    clip: ClipWindow


@dataclass
class PreparedCaptions:
    layout: CaptionLayout
    theme: CaptionTheme
    cache_key: str
    cached: bool = False


def prepare_captions(
    request: ClipRequest,
    response: Any,
    theme: ThemeInput = None,
    *,
    time_base: TimeBase,
    cache: Optional[LayoutCache] = None,
    policy: BoundaryPolicy = BoundaryPolicy.DROP,
    strategy: ParagraphStrategy = ParagraphStrategy.AUTO,
    container_width: Optional[float] = None,
    measure: Callable[..., LayoutResult] = measure_transcript,
) -> PreparedCaptions:
    """Build (or load) the layout and time map for one clip.

    Args:
        request: Episode id and clip window.
        response: STT payload dict or parsed SttResponse.
        theme: Theme or partial theme overrides; sanitized before use.
        time_base: Clock the payload timestamps are on.
        cache: Layout cache; None disables caching.
        policy: Clip-start boundary policy for the normalizer.
        strategy: Paragraph segmentation strategy.
        container_width: Measured container width, if known.
        measure: Line-layout provider ``(words, theme) -> LayoutResult``.

    Returns:
        PreparedCaptions with cached=True when served from the cache.

    Raises:
        NonMonotonicAnchorsError: In strict mode, on corrupt anchor data.
    """
    safe_theme = make_safe_theme(theme, container_width)
    clip = request.clip
    key = create_cache_key(
        request.episode_id,
        clip.clip_start_ms,
        clip.clip_end_ms,
        create_theme_fingerprint(safe_theme),
        time_base,
        policy,
        strategy,
    )

    if cache is not None:
        hit = cache.get_cached_layout(key)
        if hit is not None:
            logger.info("Layout cache hit for %s", key)
            return PreparedCaptions(layout=hit.layout, theme=safe_theme, cache_key=key, cached=True)

    transcript = build_clip_transcript(
        response, clip, time_base=time_base, policy=policy, strategy=strategy,
    )
    layout_words = words_to_layout_words(transcript.words, transcript.paragraphs)

    try:
        measured = measure(layout_words, safe_theme)
    except Exception:
        logger.error("Layout measurement failed, using one word per line", exc_info=True)
        measured = one_word_per_line(layout_words, safe_theme)

    time_map = build_time_offset_map(
        transcript.words, measured.y_by_word_index, measured.total_height,
    )
    layout = CaptionLayout(
        words=transcript.words,
        paragraphs=transcript.paragraphs,
        lines=measured.lines,
        y_by_word_index=measured.y_by_word_index,
        total_height=measured.total_height,
        time_map=time_map,
    )
    logger.info(
        "Prepared %s: %d words, %d lines, %d anchors, width %.0f",
        request.episode_id, len(layout.words), len(layout.lines), len(time_map),
        safe_theme.max_width_dp,
    )

    if cache is not None and not transcript.is_empty:
        cache.cache_layout(key, layout)
    return PreparedCaptions(layout=layout, theme=safe_theme, cache_key=key, cached=False)


class CaptionPreparer:
    """Runs preparation off the frame path and swaps results into a controller.

    WHY: A user may pick a new clip (or change the theme) before the
    previous preparation finishes. Stale results must never reach the
    screen, but cancelling a thread mid-computation is not possible.

    HOW: Every prepare() call increments a generation counter and remembers
    its own number. When the worker finishes, the result is applied only if
    no newer call has started since. A superseded call that raises is
    discarded the same way; only the current call propagates its error.
    """

    def __init__(
        self,
        controller: ScrollController,
        cache: Optional[LayoutCache] = None,
        viewport_height: float = 0.0,
    ) -> None:
        self.controller = controller
        self.cache = cache
        self.viewport_height = viewport_height
        self.current = None  # type: Optional[PreparedCaptions]
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def prepare(
        self,
        request: ClipRequest,
        response: Any,
        theme: ThemeInput = None,
        **kwargs: Any,
    ) -> Optional[PreparedCaptions]:
        """Prepare a clip; return the result, or None if superseded."""
        self._generation += 1
        generation = self._generation

        kwargs.setdefault("cache", self.cache)
        try:
            result = await asyncio.to_thread(
                functools.partial(prepare_captions, request, response, theme, **kwargs)
            )
        except Exception:
            if generation == self._generation:
                raise
            logger.debug("Discarding failed superseded preparation %d (current %d)",
                         generation, self._generation, exc_info=True)
            return None

        if generation != self._generation:
            logger.debug("Discarding superseded preparation %d (current %d)",
                         generation, self._generation)
            return None

        self.controller.set_map(result.layout.time_map)
        self.controller.set_geometry(ScrollGeometry.from_layout(
            result.layout.total_height, self.viewport_height, result.theme.line_height,
        ))
        self.current = result
        return result

    def set_viewport_height(self, viewport_height: float) -> None:
        """Re-derive the scroll geometry after the view was resized."""
        self.viewport_height = viewport_height
        if self.current is not None:
            self.controller.set_geometry(ScrollGeometry.from_layout(
                self.current.layout.total_height, viewport_height, self.current.theme.line_height,
            ))
