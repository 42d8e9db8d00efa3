"""Configuration constants, engine tuning values, and .env loading.

WHY: Centralizes every tunable number of the synchronization engine so it
is easy to find, update, and override. Thresholds like the paragraph pause
lengths or the drift step are plain module-level values, not buried in
logic, so both humans and tests can adjust them confidently.

HOW: python-dotenv loads the .env file on import. Engine constants are
module-level numbers. Deployment settings (cache directory, strict mode,
server host/port) are read from the environment with sensible defaults.

RULES:
- All times are integer milliseconds, all distances are display points
- Engine constants are read at call time by the modules that use them,
  so tests can monkeypatch them
- Deployment settings can be overridden via environment variables
- STRICT mode turns data-integrity warnings into exceptions (development)
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


def _env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment ("1", "true", "yes")."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ---------------------------------------------------------------------------
# Paragraph segmentation
# ---------------------------------------------------------------------------

LONG_PAUSE_MS = 1000
"""A gap this long between two words always starts a new paragraph."""

PUNCTUATED_PAUSE_MS = 600
"""A gap this long starts a new paragraph after terminal punctuation."""

# ---------------------------------------------------------------------------
# Anchor building / scrolling
# ---------------------------------------------------------------------------

SETTLE_MS = 2000
"""Delay after the last anchor at which the view reaches the content end."""

SCROLL_BLEND = 0.75
"""Weight of the current scroll offset in the per-frame smoothing filter."""

DRIFT_THRESHOLD_PX = 12.0
DRIFT_STEP_PX = 12.0

# ---------------------------------------------------------------------------
# Caption bubble selection
# ---------------------------------------------------------------------------

STARTUP_GRACE_MS = 500
"""Window after clip start in which the first utterance is forced on screen."""

MAX_CAPTION_CHARS = 60
"""Roughly two lines of bubble text."""

# ---------------------------------------------------------------------------
# Clip sanity checks
# ---------------------------------------------------------------------------

SUSPICIOUS_CLIP_START_MS = 6 * 3_600_000
"""Clip starts beyond six hours are almost certainly epoch values."""

# ---------------------------------------------------------------------------
# Layout cache
# ---------------------------------------------------------------------------

LAYOUT_VERSION = 1
"""Bump whenever the cached layout shape or its computation changes."""

CACHE_KEY_PREFIX = "caption-layout:"

CACHE_DIR = Path(
    os.getenv("CAPTION_SYNC_CACHE_DIR", str(Path.home() / ".cache" / "caption_sync"))
)

# ---------------------------------------------------------------------------
# Runtime behaviour
# ---------------------------------------------------------------------------

STRICT = _env_flag("CAPTION_SYNC_STRICT", False)
"""Raise on non-monotonic anchor data instead of clamping."""

SESSION_TTL_SECONDS = int(os.getenv("CAPTION_SYNC_SESSION_TTL", "3600"))
MAX_SESSIONS = int(os.getenv("CAPTION_SYNC_MAX_SESSIONS", "100"))

SERVER_HOST = os.getenv("CAPTION_SYNC_HOST", "127.0.0.1")
SERVER_PORT = int(os.getenv("CAPTION_SYNC_PORT", "8000"))
