"""Speech-to-text payload models.

WHY: The engine consumes word and utterance JSON from the STT provider.
This package turns that JSON into typed dataclasses that the rest of the
engine can rely on.

RULES:
- Parsing never raises on malformed items; they are skipped and logged
- Times stay in provider milliseconds here; shifting happens later
"""

from caption_sync.api.models import SttResponse, SttUtterance, SttWord

__all__ = ["SttResponse", "SttUtterance", "SttWord"]
