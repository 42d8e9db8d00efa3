"""STT provider payload dataclasses.

WHY: The speech-to-text provider returns JSON with a flat ``words`` list
and/or an ``utterances`` list whose items carry their own ``words``. The
payload is produced by a network service we do not control and has been
seen with missing fields, string timestamps, and null lists. Typed
dataclasses make the shape explicit and keep the leniency in one place.

HOW: Each dataclass maps 1:1 to a provider JSON object. ``from_dict``
factory methods coerce numbers and skip malformed items instead of raising,
logging what was dropped.

RULES:
- start/end are provider milliseconds on whatever clock the request used;
  the normalizer decides how to shift them (see TimeBase)
- Items that are not dicts, or whose start/end are not finite numbers,
  are skipped
- SttResponse.from_dict accepts None or non-dict input and returns an
  empty response
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


def _as_ms(value: Any) -> Optional[float]:
    """Coerce a provider timestamp to float milliseconds, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


@dataclass
class SttWord:
    """A single word token as returned by the STT provider.

    RULES:
    - text is stripped of surrounding whitespace
    - confidence defaults to 0.0 when absent
    """

    text: str
    start: float
    end: float
    confidence: float = 0.0
    speaker: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional[SttWord]:
        """Parse one word dict, returning None for malformed items."""
        if not isinstance(data, dict):
            return None
        start = _as_ms(data.get("start", data.get("start_ms")))
        end = _as_ms(data.get("end", data.get("end_ms")))
        if start is None or end is None:
            return None
        confidence = _as_ms(data.get("confidence"))
        return cls(
            text=str(data.get("text") or "").strip(),
            start=start,
            end=end,
            confidence=confidence if confidence is not None else 0.0,
            speaker=data.get("speaker"),
        )


@dataclass
class SttUtterance:
    """A provider-identified contiguous speech segment with its own words."""

    text: str
    start: float
    end: float
    confidence: float = 0.0
    speaker: Optional[str] = None
    words: List[SttWord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Optional[SttUtterance]:
        if not isinstance(data, dict):
            return None
        start = _as_ms(data.get("start", data.get("start_ms")))
        end = _as_ms(data.get("end", data.get("end_ms")))
        if start is None or end is None:
            return None
        confidence = _as_ms(data.get("confidence"))
        return cls(
            text=str(data.get("text") or ""),
            start=start,
            end=end,
            confidence=confidence if confidence is not None else 0.0,
            speaker=data.get("speaker"),
            words=_parse_words(data.get("words")),
        )


@dataclass
class SttResponse:
    """A complete transcript payload for one clip request."""

    text: str = ""
    words: List[SttWord] = field(default_factory=list)
    utterances: List[SttUtterance] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> SttResponse:
        """Parse a provider payload, tolerating any malformed input.

        RULES:
        - Never raises; a non-dict payload yields an empty response
        - Malformed words/utterances are skipped and counted in a log line
        """
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Ignoring STT payload of type %s", type(data).__name__)
            return cls()

        utterances = []  # type: List[SttUtterance]
        raw_utterances = data.get("utterances")
        if isinstance(raw_utterances, list):
            for item in raw_utterances:
                utterance = SttUtterance.from_dict(item)
                if utterance is not None:
                    utterances.append(utterance)
            skipped = len(raw_utterances) - len(utterances)
            if skipped:
                logger.warning("Skipped %d malformed utterances", skipped)

        return cls(
            text=str(data.get("text") or ""),
            words=_parse_words(data.get("words")),
            utterances=utterances,
        )

    @property
    def is_empty(self) -> bool:
        return not self.words and not any(u.words for u in self.utterances)


def _parse_words(raw: Any) -> List[SttWord]:
    if not isinstance(raw, list):
        return []
    words = []  # type: List[SttWord]
    for item in raw:
        word = SttWord.from_dict(item)
        if word is not None:
            words.append(word)
    skipped = len(raw) - len(words)
    if skipped:
        logger.warning("Skipped %d malformed words", skipped)
    return words
