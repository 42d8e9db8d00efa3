"""Shared test fixtures for the caption_sync test suite.

WHY: Most test modules need the same small STT payload: two utterances,
"Hello world." and "This is a test.", with punctuation delivered as
separate tokens. Centralizing it here keeps every module on the same
authoritative example.

HOW: Pytest fixtures provide the raw payload dict, the clip window that
covers it, a fresh in-memory layout cache, and a deterministic theme.

RULES:
- Payload times are on the source clock (TimeBase.SOURCE)
- The mock clip is [0, 5100] ms, so source and clip times coincide
- The theme uses the "System" font, which never resolves to a font file,
  so word widths come from the character estimate (deterministic)
"""

from typing import Any, Dict, List

import pytest

from caption_layout import DEFAULT_THEME
from caption_sync.core.cache import LayoutCache, MemoryCacheStore
from caption_sync.core.ir import ClipWindow, Word


# ---------------------------------------------------------------------------
# Mock two-utterance payload
# ---------------------------------------------------------------------------

UTTERANCE_1_WORDS: List[Dict[str, Any]] = [
    {"text": "Hello", "start": 1000, "end": 1500, "confidence": 0.98},
    {"text": "world", "start": 1500, "end": 2000, "confidence": 0.97},
    {"text": ".",     "start": 2000, "end": 2100, "confidence": 0.99},
]

UTTERANCE_2_WORDS: List[Dict[str, Any]] = [
    {"text": "This",  "start": 3000, "end": 3500, "confidence": 0.96},
    {"text": "is",    "start": 3500, "end": 4000, "confidence": 0.95},
    {"text": "a",     "start": 4000, "end": 4500, "confidence": 0.97},
    {"text": "test",  "start": 4500, "end": 5000, "confidence": 0.94},
    {"text": ".",     "start": 5000, "end": 5100, "confidence": 0.99},
]


def make_payload() -> Dict[str, Any]:
    return {
        "text": "Hello world. This is a test.",
        "words": [dict(w) for w in UTTERANCE_1_WORDS + UTTERANCE_2_WORDS],
        "utterances": [
            {
                "text": "Hello world.",
                "start": 1000,
                "end": 2100,
                "confidence": 0.98,
                "speaker": "A",
                "words": [dict(w) for w in UTTERANCE_1_WORDS],
            },
            {
                "text": "This is a test.",
                "start": 3000,
                "end": 5100,
                "confidence": 0.96,
                "speaker": "B",
                "words": [dict(w) for w in UTTERANCE_2_WORDS],
            },
        ],
    }


def words_from(rows) -> List[Word]:
    """Build IR words from (text, start, end) tuples."""
    return [Word(text, start, end) for text, start, end in rows]


@pytest.fixture
def mock_payload():
    """Two utterances, 8 provider tokens, source clock."""
    return make_payload()


@pytest.fixture
def mock_clip():
    return ClipWindow(0, 5100)


@pytest.fixture
def memory_cache():
    return LayoutCache(MemoryCacheStore())


@pytest.fixture
def theme():
    return DEFAULT_THEME


@pytest.fixture
def make_words():
    """Factory fixture: make_words([("Hello", 1000, 1500), ...])."""
    return words_from
