"""Bubble-style caption selection: one active sentence at a time.

WHY: Some share formats show a single caption bubble instead of the
scrolling transcript. They need "which utterance is on screen right now"
and a short, tidy text for it, without any layout work.

HOW: A CaptionSession is built per clip from the STT response. Utterances
are shifted into clip time once. current_caption() then answers from the
playback time with a short startup grace, a containment scan, and a
closest-utterance fallback that is returned inactive so the caller can dim
it.

RULES:
- One session per clip; construct a fresh one for every clip
- reset() empties the session so reuse can never leak the previous clip
- Outside [0, duration] the caption is blank
- Within the first STARTUP_GRACE_MS the first utterance is forced active
- Caption text is at most MAX_CAPTION_CHARS (plus "...")
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from caption_sync import config
from caption_sync.api.models import SttResponse
from caption_sync.core.ir import ClipWindow, TimeBase

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_SPACING_RE = re.compile(r"([.!?])\s*([a-z])")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def normalize_caption_text(text: Optional[str], limit: Optional[int] = None) -> str:
    """Tidy utterance text for a two-line bubble.

    Collapses whitespace, truncates long text to whole sentences (or, if
    none fits, whole words) followed by "...", and capitalizes the first
    letter without touching the rest.
    """
    if not text:
        return ""
    if limit is None:
        limit = config.MAX_CAPTION_CHARS

    normalized = _WHITESPACE_RE.sub(" ", text.strip())
    normalized = _SENTENCE_SPACING_RE.sub(r"\1 \2", normalized)

    if len(normalized) > limit:
        truncated = ""
        for sentence in _SENTENCE_SPLIT_RE.split(normalized):
            sentence = sentence.strip()
            candidate = truncated + (". " if truncated else "") + sentence
            if not sentence or len(candidate) > limit:
                break
            truncated = candidate

        if not truncated:
            for word in normalized.split(" "):
                if len(truncated + " " + word) > limit:
                    break
                truncated += (" " if truncated else "") + word

        normalized = truncated + "..."

    if normalized and normalized[0] != normalized[0].upper():
        normalized = normalized[0].upper() + normalized[1:]
    return normalized


@dataclass(frozen=True)
class CaptionUtterance:
    """An utterance in clip-relative milliseconds."""

    text: str
    start_ms: float
    end_ms: float
    speaker: Optional[str] = None

    def distance_to(self, t_ms: float) -> float:
        return min(abs(t_ms - self.start_ms), abs(t_ms - self.end_ms))


@dataclass(frozen=True)
class Caption:
    text: str = ""
    speaker: Optional[str] = None
    is_active: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "speaker": self.speaker, "isActive": self.is_active}


BLANK = Caption()


class CaptionSession:
    """Caption state for exactly one clip."""

    def __init__(
        self,
        clip: Optional[ClipWindow] = None,
        utterances: Optional[List[CaptionUtterance]] = None,
        has_transcript: bool = False,
    ) -> None:
        self.clip = clip
        self.utterances = list(utterances or [])
        self.has_transcript = has_transcript

    @classmethod
    def from_response(
        cls,
        response: Any,
        clip: ClipWindow,
        *,
        time_base: TimeBase,
    ) -> CaptionSession:
        """Build a session from a provider payload (dict or SttResponse).

        A payload without utterances yields a single utterance spanning the
        whole clip with the full transcript text.
        """
        if not isinstance(response, SttResponse):
            response = SttResponse.from_dict(response)

        offset = clip.offset_for(time_base)
        if response.utterances:
            utterances = [
                CaptionUtterance(
                    text=u.text,
                    start_ms=u.start - offset,
                    end_ms=u.end - offset,
                    speaker=u.speaker,
                )
                for u in response.utterances
            ]
        else:
            utterances = [CaptionUtterance(text=response.text or "", start_ms=0, end_ms=clip.duration_ms)]

        logger.debug("Caption session for clip %d-%d ms with %d utterances",
                     clip.clip_start_ms, clip.clip_end_ms, len(utterances))
        return cls(clip=clip, utterances=utterances, has_transcript=True)

    def reset(self) -> None:
        self.clip = None
        self.utterances = []
        self.has_transcript = False

    def _caption(self, utterance: CaptionUtterance, active: bool) -> Caption:
        return Caption(
            text=normalize_caption_text(utterance.text),
            speaker=utterance.speaker,
            is_active=active,
        )

    def find_closest_utterance(self, relative_ms: float) -> Optional[CaptionUtterance]:
        """Utterance with the smallest distance to either of its boundaries."""
        if not self.utterances:
            return None
        return min(self.utterances, key=lambda u: u.distance_to(relative_ms))

    def current_caption(self, now_ms: float) -> Caption:
        """Caption to display at absolute source time now_ms."""
        if self.clip is None or not self.utterances:
            return BLANK

        relative = now_ms - self.clip.clip_start_ms
        if relative < 0 or relative > self.clip.duration_ms:
            return BLANK

        if relative <= config.STARTUP_GRACE_MS:
            return self._caption(self.utterances[0], True)

        for utterance in self.utterances:
            if utterance.start_ms <= relative <= utterance.end_ms:
                return self._caption(utterance, True)

        closest = self.find_closest_utterance(relative)
        return self._caption(closest, False)

    def debug_info(self) -> Dict[str, Any]:
        clip = self.clip
        return {
            "hasTranscript": self.has_transcript,
            "utteranceCount": len(self.utterances),
            "clipStartMs": clip.clip_start_ms if clip else 0,
            "clipEndMs": clip.clip_end_ms if clip else 0,
            "clipDuration": clip.duration_ms if clip else 0,
            "firstUtterance": self.utterances[0].text if self.utterances else None,
            "lastUtterance": self.utterances[-1].text if self.utterances else None,
        }
