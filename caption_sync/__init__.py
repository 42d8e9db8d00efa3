"""Caption Sync: transcript time synchronization for podcast clip captions.

WHY: A shared podcast clip shows its transcript scrolling in step with the
audio. Raw speech-to-text output is in the wrong clock, splits punctuation
into separate tokens, and knows nothing about lines on screen. This package
turns it into a smooth time-to-scroll-offset mapping and drives the view
from the playback clock.

HOW: Four stages. Normalize (provider JSON to clip-relative words), segment
(paragraph boundaries), lay out and map (caption_layout lines to a
TimeOffsetMap), and scroll (a per-frame controller). A bubble-style
caption selector is an alternate consumer of the same payload.

RULES:
- Every stage before the scroller runs once per clip, off the frame path
- The TimeOffsetMap is the only contract between preparation and frames
- The provider clock (source vs clip) is always passed explicitly
"""

__version__ = "0.1.0"
