"""Persistent layout cache keyed by clip, theme and preparation options.

WHY: Measuring and wrapping a transcript is the slowest part of preparing
a clip, and the same clip is opened again and again while a user edits it.
Caching the finished layout (words, paragraphs, lines, offsets and anchors)
lets a reopened clip scroll immediately.

HOW: A CacheStore is any string-keyed get/set/remove/list_keys backend.
MemoryCacheStore keeps values in a dict; FileCacheStore writes one JSON
file per key under CAPTION_SYNC_CACHE_DIR. LayoutCache serializes a
CaptionLayout to JSON with a ``layoutV`` version field and, on read,
validates the payload against LAYOUT_SCHEMA with jsonschema before
rebuilding the dataclasses.

RULES:
- Keys start with CACHE_KEY_PREFIX so clear_cache() only touches our keys
- The key embeds the theme fingerprint, time base, boundary policy and
  paragraph strategy; changing any of them is a new key
- A version mismatch, schema violation, bad JSON or store error is a
  logged miss, never an exception
- cache_layout() and clear_cache() never raise
- LAYOUT_VERSION is read at call time (bump it to invalidate everything)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote, unquote

import jsonschema

from caption_layout.models import CaptionTheme, Line
from caption_sync import config
from caption_sync.core.ir import BoundaryPolicy, ParagraphBoundary, TimeBase, Word
from caption_sync.core.segmenter import ParagraphStrategy
from caption_sync.core.timemap import TimeOffsetMap

logger = logging.getLogger(__name__)


def create_theme_fingerprint(theme: CaptionTheme) -> str:
    """Theme fields that influence layout, joined into a key fragment."""
    return "{}-{:g}-{:g}-{:g}-{:g}".format(
        theme.font_family,
        theme.font_size,
        theme.line_height,
        theme.max_width_dp,
        theme.paragraph_spacing_dp,
    )


def create_cache_key(
    episode_id: str,
    clip_start_ms: int,
    clip_end_ms: int,
    theme_fingerprint: str,
    time_base: TimeBase,
    policy: BoundaryPolicy = BoundaryPolicy.DROP,
    strategy: ParagraphStrategy = ParagraphStrategy.AUTO,
) -> str:
    """Key for one clip layout.

    Everything that changes the prepared words or lines is part of the
    key: the clip window, the theme, the payload clock, the boundary
    policy and the paragraph strategy.
    """
    return "{}{}-{}-{}-{}-{}-{}-{}".format(
        config.CACHE_KEY_PREFIX,
        episode_id,
        clip_start_ms,
        clip_end_ms,
        theme_fingerprint,
        TimeBase(time_base).value,
        BoundaryPolicy(policy).value,
        ParagraphStrategy(strategy).value,
    )


# =============================================================================
# Stores
# =============================================================================

class CacheStore(Protocol):
    """String-keyed persistent storage."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def list_keys(self) -> List[str]: ...


class MemoryCacheStore:
    """In-process store, used by tests and for ephemeral caching."""

    def __init__(self) -> None:
        self._data = {}  # type: Dict[str, str]

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def list_keys(self) -> List[str]:
        return list(self._data)


class FileCacheStore:
    """One JSON file per key in a directory.

    Keys are percent-encoded into file names, so any episode id is safe.
    Writes go to a temporary file first and are renamed into place.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = Path(directory) if directory is not None else config.CACHE_DIR

    def _path(self, key: str) -> Path:
        return self.directory / (quote(key, safe="") + self.SUFFIX)

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def list_keys(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return [
            unquote(p.name[: -len(self.SUFFIX)])
            for p in self.directory.iterdir()
            if p.name.endswith(self.SUFFIX)
        ]


# =============================================================================
# Cached payload
# =============================================================================

_INDEX_RANGE = {
    "type": "object",
    "required": ["startWordIdx", "endWordIdx"],
    "properties": {
        "startWordIdx": {"type": "integer", "minimum": 0},
        "endWordIdx": {"type": "integer", "minimum": 0},
    },
}

LAYOUT_SCHEMA = {
    "type": "object",
    "required": ["layoutV", "words", "paragraphs", "lines", "yByWordIndex", "totalH", "anchors"],
    "properties": {
        "layoutV": {"type": "integer"},
        "words": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["text", "startMs", "endMs"],
                "properties": {
                    "text": {"type": "string"},
                    "startMs": {"type": "number"},
                    "endMs": {"type": "number"},
                },
            },
        },
        "paragraphs": {"type": "array", "items": _INDEX_RANGE},
        "lines": {
            "type": "array",
            "items": {
                "allOf": [
                    _INDEX_RANGE,
                    {"required": ["text"], "properties": {"text": {"type": "string"}}},
                ],
            },
        },
        "yByWordIndex": {"type": "array", "items": {"type": "number"}},
        "totalH": {"type": "number"},
        "anchors": {
            "type": "object",
            "required": ["times", "offsets"],
            "properties": {
                "times": {"type": "array", "items": {"type": "number"}},
                "offsets": {"type": "array", "items": {"type": "number"}},
            },
        },
    },
}


@dataclass
class CaptionLayout:
    """Everything the scroller needs for one clip under one theme."""

    words: List[Word] = field(default_factory=list)
    paragraphs: List[ParagraphBoundary] = field(default_factory=list)
    lines: List[Line] = field(default_factory=list)
    y_by_word_index: List[float] = field(default_factory=list)
    total_height: float = 0.0
    time_map: TimeOffsetMap = field(default_factory=TimeOffsetMap)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "words": [w.to_dict() for w in self.words],
            "paragraphs": [p.to_dict() for p in self.paragraphs],
            "lines": [line.to_dict() for line in self.lines],
            "yByWordIndex": list(self.y_by_word_index),
            "totalH": self.total_height,
            "anchors": {
                "times": list(self.time_map.times),
                "offsets": list(self.time_map.offsets),
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CaptionLayout:
        anchors = data["anchors"]
        return cls(
            words=[Word.from_dict(w) for w in data["words"]],
            paragraphs=[ParagraphBoundary.from_dict(p) for p in data["paragraphs"]],
            lines=[Line.from_dict(line) for line in data["lines"]],
            y_by_word_index=[float(y) for y in data["yByWordIndex"]],
            total_height=float(data["totalH"]),
            time_map=TimeOffsetMap(
                times=tuple(float(t) for t in anchors["times"]),
                offsets=tuple(float(y) for y in anchors["offsets"]),
            ),
        )


@dataclass
class CachedLayout:
    version: int
    layout: CaptionLayout


class LayoutCache:
    """Versioned layout cache on top of a CacheStore."""

    def __init__(self, store: Optional[CacheStore] = None) -> None:
        self.store = store if store is not None else MemoryCacheStore()

    def cache_layout(self, key: str, layout: CaptionLayout) -> None:
        payload = layout.to_dict()
        payload["layoutV"] = config.LAYOUT_VERSION
        try:
            self.store.set(key, json.dumps(payload))
        except Exception:
            logger.warning("Failed to cache layout %s", key, exc_info=True)

    def get_cached_layout(self, key: str) -> Optional[CachedLayout]:
        try:
            raw = self.store.get(key)
        except Exception:
            logger.warning("Failed to read cached layout %s", key, exc_info=True)
            return None
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            jsonschema.validate(instance=data, schema=LAYOUT_SCHEMA)
        except (ValueError, jsonschema.ValidationError) as exc:
            logger.warning("Discarding corrupt cached layout %s: %s", key, exc)
            return None

        version = data["layoutV"]
        if version != config.LAYOUT_VERSION:
            logger.info("Cached layout version mismatch for %s (%s != %s), ignoring",
                        key, version, config.LAYOUT_VERSION)
            return None

        try:
            layout = CaptionLayout.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Discarding unreadable cached layout %s: %s", key, exc)
            return None
        return CachedLayout(version=version, layout=layout)

    def _our_keys(self) -> List[str]:
        return [k for k in self.store.list_keys() if k.startswith(config.CACHE_KEY_PREFIX)]

    def clear_cache(self) -> int:
        """Remove every layout entry; return how many were removed."""
        try:
            keys = self._our_keys()
            for key in keys:
                self.store.remove(key)
        except Exception:
            logger.warning("Failed to clear caption cache", exc_info=True)
            return 0
        logger.info("Cleared %d cached layouts", len(keys))
        return len(keys)

    def cache_size(self) -> int:
        try:
            return len(self._our_keys())
        except Exception:
            logger.warning("Failed to get cache size", exc_info=True)
            return 0
