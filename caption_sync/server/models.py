"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate JSON Schema that
appears in the /docs UI.

HOW: Each endpoint pair (request + response) has its own model. The
engine's own enums (TimeBase, BoundaryPolicy, ParagraphStrategy) are used
directly so the accepted values can never drift from the engine.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- time_base is required on every request that carries a payload
- The STT payload is passed through as a plain dict; the engine parses
  it leniently
- Response models never expose internal implementation details
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from caption_sync.core.ir import BoundaryPolicy, TimeBase
from caption_sync.core.segmenter import ParagraphStrategy


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ThemeOverrides(BaseModel):
    """Partial caption theme; missing or invalid fields use the defaults."""

    font_family: Optional[str] = Field(default=None, description="Font family or TrueType file.")
    font_size: Optional[float] = Field(default=None, description="Font size (dp).")
    line_height: Optional[float] = Field(default=None, description="Line height (dp).")
    max_width_dp: Optional[float] = Field(default=None, description="Wrap width (dp), capped at 360.")
    paragraph_spacing_dp: Optional[float] = Field(default=None, description="Extra space before paragraphs (dp).")
    text_color: Optional[str] = Field(default=None, description="Text color (CSS hex).")


class ClipFields(BaseModel):
    episode_id: str = Field(description="Episode identifier (part of the cache key).")
    clip_start_ms: int = Field(description="Clip start on the source timeline (ms).")
    clip_end_ms: int = Field(description="Clip end on the source timeline (ms); must exceed start.")
    time_base: TimeBase = Field(
        description="Clock of the payload timestamps: 'source' (episode) or 'clip' (already clip-relative).",
    )
    payload: Dict[str, Any] = Field(description="STT provider response with words and/or utterances.")


class LayoutRequest(ClipFields):
    """Prepare the scrolling-transcript layout for one clip."""

    policy: BoundaryPolicy = Field(
        default=BoundaryPolicy.DROP,
        description="Handling of words crossing the clip start.",
    )
    strategy: ParagraphStrategy = Field(
        default=ParagraphStrategy.AUTO,
        description="Paragraph segmentation strategy.",
    )
    theme: Optional[ThemeOverrides] = Field(default=None, description="Theme overrides.")
    container_width: Optional[float] = Field(
        default=None,
        description="Measured container width; caps the wrap width at 82% of it.",
    )

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "episode_id": "ep-42",
                "clip_start_ms": 0,
                "clip_end_ms": 5100,
                "time_base": "source",
                "payload": {
                    "words": [
                        {"text": "Hello", "start": 1000, "end": 1500},
                        {"text": "world.", "start": 1500, "end": 2100},
                    ],
                },
            }
        ]
    }}


class SessionRequest(ClipFields):
    """Open a bubble-caption session for one clip."""


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LayoutResponse(BaseModel):
    cache_key: str = Field(description="Key the layout is cached under.")
    cached: bool = Field(description="True when served from the layout cache.")
    theme: Dict[str, Any] = Field(description="The sanitized theme actually used.")
    layout: Dict[str, Any] = Field(
        description="Words, paragraphs, lines, yByWordIndex, totalH and anchors.",
    )


class CacheClearedResponse(BaseModel):
    removed: int = Field(description="Number of cached layouts removed.")


class SessionCreatedResponse(BaseModel):
    id: str = Field(description="Session identifier for caption polling.")
    episode_id: str = Field(description="Episode the session belongs to.")
    utterance_count: int = Field(description="Utterances available for display.")


class CaptionResponse(BaseModel):
    """Caption bubble content at a point in time."""

    text: str = Field(description="Normalized caption text (empty when blank).")
    speaker: Optional[str] = Field(default=None, description="Speaker label, if known.")
    is_active: bool = Field(description="False for the closest-utterance fallback; render dimmed.")
    time_ms: float = Field(description="The queried absolute time (ms).")


class HealthResponse(BaseModel):
    status: str = Field(description="Service status ('ok').")
    version: str = Field(description="Service version.")
    sessions: int = Field(description="Open caption sessions.")
    cached_layouts: int = Field(description="Layouts in the cache.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error message.")

