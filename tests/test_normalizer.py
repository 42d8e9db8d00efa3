"""Tests for transcript normalization (payload to clip-relative words).

WHY: Every downstream stage trusts the normalized word list. A wrong
shift, a punctuation token left standing on its own line, or a split
hyphenated word shows up directly on screen.

HOW: Tests are grouped by pass: parsing robustness, time base shift,
boundary policies, punctuation merge, hyphen collapse, and the combined
build_clip_transcript() entry point.

RULES:
- Payloads are plain dicts, as received from the provider
- Every call passes time_base explicitly
"""

from __future__ import annotations

import logging

import pytest

from caption_sync.api.models import SttResponse
from caption_sync.core.ir import BoundaryPolicy, ClipWindow, TimeBase, Word
from caption_sync.core.normalizer import (
    build_clip_transcript,
    collapse_hyphens,
    merge_punctuation,
    normalize_words,
)
from caption_sync.core.segmenter import ParagraphStrategy


def _payload(*rows):
    return {"words": [{"text": t, "start": s, "end": e} for t, s, e in rows]}


def _triples(words):
    return [(w.text, w.start_ms, w.end_ms) for w in words]


# ---------------------------------------------------------------------------
# Parsing robustness
# ---------------------------------------------------------------------------


class TestMalformedPayloads:
    """Empty or broken payloads mean "no captions", never an exception."""

    @pytest.mark.parametrize("payload", [None, {}, {"words": []}, "garbage", 42, {"words": "x"}])
    def test_returns_empty_list(self, payload):
        clip = ClipWindow(0, 5000)
        assert normalize_words(payload, clip, time_base=TimeBase.SOURCE) == []

    def test_logs_warning_when_no_words(self, caplog):
        with caplog.at_level(logging.WARNING, logger="caption_sync.core.normalizer"):
            normalize_words({"words": []}, ClipWindow(0, 5000), time_base=TimeBase.SOURCE)
        assert "no captions available" in caplog.text

    def test_skips_malformed_items(self):
        payload = {"words": [
            {"text": "ok", "start": 100, "end": 200},
            {"text": "no-times"},
            {"text": "bad", "start": "soon", "end": 300},
            "not a dict",
            {"text": "nan", "start": float("nan"), "end": 400},
        ]}
        words = normalize_words(payload, ClipWindow(0, 5000), time_base=TimeBase.SOURCE)
        assert _triples(words) == [("ok", 100, 200)]

    def test_accepts_start_ms_keys(self):
        payload = {"words": [{"text": "hi", "start_ms": 100, "end_ms": 250}]}
        words = normalize_words(payload, ClipWindow(0, 5000), time_base=TimeBase.SOURCE)
        assert _triples(words) == [("hi", 100, 250)]

    def test_accepts_parsed_response(self, mock_payload, mock_clip):
        response = SttResponse.from_dict(mock_payload)
        words = normalize_words(response, mock_clip, time_base=TimeBase.SOURCE)
        assert len(words) == 6

    def test_drops_inverted_spans(self):
        words = normalize_words(
            _payload(("good", 100, 200), ("bad", 500, 400)),
            ClipWindow(0, 5000),
            time_base=TimeBase.SOURCE,
        )
        assert [w.text for w in words] == ["good"]

    def test_time_base_is_required(self, mock_payload, mock_clip):
        with pytest.raises(TypeError):
            normalize_words(mock_payload, mock_clip)


# ---------------------------------------------------------------------------
# Flatten and sort
# ---------------------------------------------------------------------------


class TestFlattenAndSort:

    def test_falls_back_to_utterance_words(self, mock_payload, mock_clip):
        del mock_payload["words"]
        words = normalize_words(mock_payload, mock_clip, time_base=TimeBase.SOURCE)
        assert [w.text for w in words] == ["Hello", "world.", "This", "is", "a", "test."]

    def test_output_sorted_by_start(self):
        words = normalize_words(
            _payload(("second", 2000, 2500), ("first", 1000, 1500)),
            ClipWindow(0, 5000),
            time_base=TimeBase.SOURCE,
        )
        assert [w.text for w in words] == ["first", "second"]

    def test_strips_whitespace_from_text(self):
        words = normalize_words(
            _payload(("  padded ", 100, 200)), ClipWindow(0, 5000), time_base=TimeBase.SOURCE
        )
        assert words[0].text == "padded"


# ---------------------------------------------------------------------------
# Time base
# ---------------------------------------------------------------------------


class TestTimeBase:
    """SOURCE payloads are shifted by the clip start; CLIP payloads are not."""

    def test_source_times_are_shifted(self):
        words = normalize_words(
            _payload(("hi", 61000, 61500)), ClipWindow(60000, 90000), time_base=TimeBase.SOURCE
        )
        assert _triples(words) == [("hi", 1000, 1500)]

    def test_clip_times_are_kept(self):
        words = normalize_words(
            _payload(("hi", 1000, 1500)), ClipWindow(60000, 90000), time_base=TimeBase.CLIP
        )
        assert _triples(words) == [("hi", 1000, 1500)]

    def test_string_time_base_accepted(self):
        words = normalize_words(
            _payload(("hi", 61000, 61500)), ClipWindow(60000, 90000), time_base="source"
        )
        assert words[0].start_ms == 1000

    def test_fractional_times_rounded(self):
        words = normalize_words(
            _payload(("hi", 1000.4, 1500.6)), ClipWindow(0, 5000), time_base=TimeBase.SOURCE
        )
        assert _triples(words) == [("hi", 1000, 1501)]


# ---------------------------------------------------------------------------
# Boundary policies
# ---------------------------------------------------------------------------


class TestBoundaryPolicy:
    """A word straddling the clip start is dropped or clamped."""

    CLIP = ClipWindow(10000, 20000)

    def test_drop_is_default(self):
        words = normalize_words(
            _payload(("straddle", 9500, 10200), ("inside", 10300, 10600)),
            self.CLIP,
            time_base=TimeBase.SOURCE,
        )
        assert [w.text for w in words] == ["inside"]

    def test_clamp_keeps_straddling_word(self):
        words = normalize_words(
            _payload(("straddle", 9500, 10200), ("inside", 10300, 10600)),
            self.CLIP,
            time_base=TimeBase.SOURCE,
            policy=BoundaryPolicy.CLAMP,
        )
        assert _triples(words) == [("straddle", 0, 200), ("inside", 300, 600)]

    def test_clamp_drops_words_entirely_before_clip(self):
        words = normalize_words(
            _payload(("early", 9000, 9800)),
            self.CLIP,
            time_base=TimeBase.SOURCE,
            policy=BoundaryPolicy.CLAMP,
        )
        assert words == []

    def test_clamp_caps_at_duration(self):
        words = normalize_words(
            _payload(("late", 19800, 20500)),
            self.CLIP,
            time_base=TimeBase.SOURCE,
            policy=BoundaryPolicy.CLAMP,
        )
        assert _triples(words) == [("late", 9800, 10000)]

    def test_clamp_output_has_positive_spans(self):
        words = normalize_words(
            _payload(("a", 9000, 10000), ("b", 10000, 10001), ("c", 25000, 26000)),
            self.CLIP,
            time_base=TimeBase.SOURCE,
            policy=BoundaryPolicy.CLAMP,
        )
        assert all(w.end_ms > w.start_ms for w in words)
        assert [w.text for w in words] == ["b"]


# ---------------------------------------------------------------------------
# Punctuation merge
# ---------------------------------------------------------------------------


class TestPunctuationMerge:

    def test_trailing_period_merged(self):
        words = normalize_words(
            _payload(("Hello", 1000, 1500), ("world", 1500, 2000), (".", 2000, 2100)),
            ClipWindow(0, 10000),
            time_base=TimeBase.SOURCE,
        )
        assert _triples(words) == [("Hello", 1000, 1500), ("world.", 1500, 2100)]

    def test_multiple_marks_merge_in_order(self, make_words):
        merged = merge_punctuation(make_words([
            ("Really", 0, 500), ("?", 500, 550), ("!", 550, 600), ('"', 600, 620),
        ]))
        assert _triples(merged) == [('Really?!"', 0, 620)]

    def test_end_time_never_shrinks(self, make_words):
        merged = merge_punctuation(make_words([("word", 0, 900), (",", 500, 600)]))
        assert merged[0].end_ms == 900

    def test_leading_punctuation_dropped(self, make_words):
        merged = merge_punctuation(make_words([(".", 0, 100), ("Hi", 100, 200)]))
        assert _triples(merged) == [("Hi", 100, 200)]

    def test_dash_is_not_merged(self, make_words):
        merged = merge_punctuation(make_words([("work", 0, 100), ("-", 100, 150)]))
        assert [w.text for w in merged] == ["work", "-"]

    def test_input_not_mutated(self, make_words):
        words = make_words([("world", 0, 100), (".", 100, 150)])
        merge_punctuation(words)
        assert words[0] == Word("world", 0, 100)

    def test_words_with_apostrophes_kept(self):
        words = normalize_words(
            _payload(("don't", 0, 300), ("stop", 300, 600)),
            ClipWindow(0, 10000),
            time_base=TimeBase.SOURCE,
        )
        assert [w.text for w in words] == ["don't", "stop"]


# ---------------------------------------------------------------------------
# Hyphen collapse
# ---------------------------------------------------------------------------


class TestHyphenCollapse:

    def test_work_place(self):
        words = normalize_words(
            _payload(("work", 1000, 1500), ("-", 1500, 1600), ("place", 1600, 2000)),
            ClipWindow(0, 10000),
            time_base=TimeBase.SOURCE,
        )
        assert _triples(words) == [("workplace", 1000, 2000)]

    @pytest.mark.parametrize("dash", ["-", "–", "—"])
    def test_all_dash_variants(self, make_words, dash):
        collapsed = collapse_hyphens(make_words([("e", 0, 100), (dash, 100, 120), ("mail", 120, 400)]))
        assert _triples(collapsed) == [("email", 0, 400)]

    def test_dangling_dash_dropped(self, make_words):
        collapsed = collapse_hyphens(make_words([("work", 0, 100), ("-", 100, 150)]))
        assert _triples(collapsed) == [("work", 0, 100)]

    def test_leading_dash_dropped(self, make_words):
        collapsed = collapse_hyphens(make_words([("-", 0, 50), ("place", 50, 300)]))
        assert _triples(collapsed) == [("place", 50, 300)]

    def test_punctuation_after_collapse_stays_attached(self):
        words = normalize_words(
            _payload(("work", 0, 500), ("-", 500, 600), ("place", 600, 1000), (".", 1000, 1100)),
            ClipWindow(0, 10000),
            time_base=TimeBase.SOURCE,
        )
        assert _triples(words) == [("workplace.", 0, 1100)]


# ---------------------------------------------------------------------------
# build_clip_transcript
# ---------------------------------------------------------------------------


class TestBuildClipTranscript:

    def test_mock_payload(self, mock_payload, mock_clip):
        transcript = build_clip_transcript(mock_payload, mock_clip, time_base=TimeBase.SOURCE)
        assert [w.text for w in transcript.words] == ["Hello", "world.", "This", "is", "a", "test."]
        assert [p.start_word_idx for p in transcript.paragraphs] == [2]
        assert transcript.speaker == "A"

    def test_heuristic_strategy_forced(self, mock_payload, mock_clip):
        transcript = build_clip_transcript(
            mock_payload, mock_clip,
            time_base=TimeBase.SOURCE,
            strategy=ParagraphStrategy.HEURISTIC,
        )
        # 900 ms pause after "world." triggers the punctuated-pause rule
        assert [p.start_word_idx for p in transcript.paragraphs] == [2]

    def test_empty_payload(self, mock_clip):
        transcript = build_clip_transcript({}, mock_clip, time_base=TimeBase.SOURCE)
        assert transcript.is_empty
        assert transcript.paragraphs == []
        assert transcript.speaker is None
