"""Adapter modules for converting between the IR and external library formats.

WHY: The engine IR (Word, ParagraphBoundary) uses a different data model
than the caption layout library (caption_layout.Word). Adapters bridge these
representations so each side can evolve independently.

RULES:
- Adapters are pure data transformations, no I/O and no side effects
- Adapters must not modify the source IR objects
"""

from caption_sync.adapters.layout_adapter import words_to_layout_words

__all__ = ["words_to_layout_words"]
