"""Adapter: clip transcript IR to caption_layout Word objects.

WHY: The engine IR keeps paragraphs as a separate list of word index
ranges, while the layout library expects a flag on the first word of each
new paragraph. This adapter bridges the two so neither side imports the
other's model.

HOW: Collect the start index of every paragraph boundary into a set, then
emit one layout Word per IR word with is_paragraph_start set when its index
is in that set.

RULES:
- Input words and boundaries are never modified
- Word text is copied verbatim
- Boundaries pointing outside the word list are ignored
- Word 0 is never flagged; it opens the first paragraph implicitly
"""

from typing import List, Sequence

from caption_layout.models import Word as LayoutWord
from caption_sync.core.ir import ParagraphBoundary, Word


def words_to_layout_words(
    words: Sequence[Word],
    paragraphs: Sequence[ParagraphBoundary],
) -> List[LayoutWord]:
    """Convert IR words plus paragraph boundaries into layout words."""
    starts = {
        p.start_word_idx for p in paragraphs
        if 0 < p.start_word_idx < len(words)
    }
    return [
        LayoutWord(text=w.text, is_paragraph_start=(i in starts))
        for i, w in enumerate(words)
    ]
