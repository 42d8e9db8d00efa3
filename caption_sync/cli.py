"""Command-line interface for the caption sync engine.

WHY: Developers need to inspect what the engine does with a real STT
payload without running the app: which words survive normalization, where
the lines wrap, what the bubble shows at a given time, and how the scroll
offset evolves over a playback (including a seek). The CLI exposes each of
those as a subcommand.

HOW: argparse with subcommands:
  layout       prepare a clip and print the layout JSON
  caption      print the bubble caption at one or more times
  simulate     run the scroll controller over a simulated playback
  clear-cache  remove cached layouts
  serve        run the HTTP API with uvicorn
Payloads are read from a JSON file (or "-" for stdin).

RULES:
- Data goes to stdout, status messages go to stderr
- Exit code 0 on success, 1 on input errors (missing file, bad JSON,
  invalid clip)
- --time-base is required wherever a payload is read
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from caption_layout import PRESETS
from caption_sync import config
from caption_sync.core.cache import FileCacheStore, LayoutCache
from caption_sync.core.captions import CaptionSession
from caption_sync.core.ir import BoundaryPolicy, ClipWindow, TimeBase
from caption_sync.core.pipeline import ClipRequest, prepare_captions
from caption_sync.core.scroller import ScrollController, ScrollGeometry
from caption_sync.core.segmenter import ParagraphStrategy


class CliError(Exception):
    """Input problem reported to the user with exit code 1."""


def _status(msg: str) -> None:
    """Print a status message to stderr.

    Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _emit(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False))


def _load_payload(path: str) -> Dict[str, Any]:
    try:
        if path == "-":
            return json.load(sys.stdin)
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise CliError("File not found: {}".format(path))
    except ValueError as exc:
        raise CliError("Invalid JSON in {}: {}".format(path, exc))


def _clip(args: argparse.Namespace) -> ClipWindow:
    try:
        return ClipWindow(args.clip_start, args.clip_end)
    except ValueError as exc:
        raise CliError(str(exc))


def _cache(args: argparse.Namespace) -> Optional[LayoutCache]:
    if getattr(args, "no_cache", False):
        return None
    directory = Path(args.cache_dir) if args.cache_dir else config.CACHE_DIR
    return LayoutCache(FileCacheStore(directory))


def _theme(args: argparse.Namespace) -> Dict[str, Any]:
    theme = PRESETS[args.preset].to_dict()
    if args.max_width is not None:
        theme["max_width_dp"] = args.max_width
    return theme


def _prepare(args: argparse.Namespace):
    payload = _load_payload(args.input)
    return prepare_captions(
        ClipRequest(args.episode, _clip(args)),
        payload,
        _theme(args),
        time_base=TimeBase(args.time_base),
        cache=_cache(args),
        policy=BoundaryPolicy(args.policy),
        strategy=ParagraphStrategy(args.strategy),
        container_width=args.container_width,
    )


# =============================================================================
# Subcommands
# =============================================================================

def cmd_layout(args: argparse.Namespace) -> int:
    prepared = _prepare(args)
    layout = prepared.layout
    _status("{} words, {} paragraphs, {} lines{}".format(
        len(layout.words),
        len(layout.paragraphs),
        len(layout.lines),
        " (cached)" if prepared.cached else "",
    ))
    data = layout.to_dict()
    data["cacheKey"] = prepared.cache_key
    data["theme"] = prepared.theme.to_dict()
    _emit(data)
    return 0


def cmd_caption(args: argparse.Namespace) -> int:
    clip = _clip(args)
    session = CaptionSession.from_response(
        _load_payload(args.input), clip, time_base=TimeBase(args.time_base),
    )
    times = args.at or [clip.clip_start_ms]
    for t in times:
        caption = session.current_caption(t)
        row = caption.to_dict()
        row["timeMs"] = t
        _emit(row)
    return 0


def cmd_simulate(args: argparse.Namespace) -> int:
    """Drive a ScrollController frame by frame over clip-relative time."""
    prepared = _prepare(args)
    layout = prepared.layout
    if layout.time_map.is_empty:
        _status("No words in clip; nothing to simulate")
        return 0

    controller = ScrollController(scroll_to=lambda offset: None)
    controller.set_map(layout.time_map)
    controller.set_geometry(ScrollGeometry.from_layout(
        layout.total_height, args.viewport_height, prepared.theme.line_height,
    ))

    frame_ms = 1000.0 / args.fps
    end_ms = layout.time_map.times[-1]
    t = 0.0
    frame = 0
    seeked = args.seek_at is None
    while t <= end_ms:
        if not seeked and t >= args.seek_at:
            _status("Seek {:.0f} -> {:.0f} ms".format(t, args.seek_to))
            t = float(args.seek_to)
            seeked = True
        offset = controller.tick(t)
        if frame % args.every == 0:
            _emit({"frame": frame, "timeMs": round(t, 1), "offset": round(offset, 2)})
        t += frame_ms
        frame += 1

    _status("{} frames, {} drift-limited".format(frame, controller.drift_count))
    return 0


def cmd_clear_cache(args: argparse.Namespace) -> int:
    removed = _cache(args).clear_cache()
    _status("Removed {} cached layout(s)".format(removed))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("caption_sync.server.app:app", host=args.host, port=args.port)
    return 0


# =============================================================================
# Parser
# =============================================================================

def _add_payload_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="STT payload JSON file, or '-' for stdin.")
    parser.add_argument("--clip-start", type=int, required=True, help="Clip start (ms).")
    parser.add_argument("--clip-end", type=int, required=True, help="Clip end (ms).")
    parser.add_argument(
        "--time-base",
        choices=[tb.value for tb in TimeBase],
        required=True,
        help="Whether payload times are on the source or the clip clock.",
    )


def _add_layout_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--episode", default="local", help="Episode id for the cache key.")
    parser.add_argument(
        "--policy",
        choices=[p.value for p in BoundaryPolicy],
        default=BoundaryPolicy.DROP.value,
        help="Words crossing the clip start (default: %(default)s).",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in ParagraphStrategy],
        default=ParagraphStrategy.AUTO.value,
        help="Paragraph segmentation (default: %(default)s).",
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), default="default")
    parser.add_argument("--max-width", type=float, default=None, help="Wrap width (dp).")
    parser.add_argument("--container-width", type=float, default=None)
    parser.add_argument("--cache-dir", default=None, help="Layout cache directory.")
    parser.add_argument("--no-cache", action="store_true", help="Bypass the layout cache.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    Separate from main() so tests can inspect the parser.
    """
    parser = argparse.ArgumentParser(
        prog="caption_sync",
        description="Synchronize podcast clip transcripts with playback time.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("layout", help="Prepare a clip and print its layout JSON.")
    _add_payload_args(p)
    _add_layout_args(p)
    p.set_defaults(func=cmd_layout)

    p = sub.add_parser("caption", help="Print the bubble caption at given times.")
    _add_payload_args(p)
    p.add_argument(
        "--at", type=float, action="append", default=None,
        help="Absolute source time (ms). Repeatable. Default: clip start.",
    )
    p.set_defaults(func=cmd_caption)

    p = sub.add_parser("simulate", help="Simulate scrolling over a playback.")
    _add_payload_args(p)
    _add_layout_args(p)
    p.add_argument("--viewport-height", type=float, default=400.0)
    p.add_argument("--fps", type=float, default=60.0)
    p.add_argument("--every", type=int, default=1, help="Print every Nth frame.")
    p.add_argument("--seek-at", type=float, default=None, help="Clip time of a seek (ms).")
    p.add_argument("--seek-to", type=float, default=0.0, help="Seek target (ms).")
    p.set_defaults(func=cmd_simulate)

    p = sub.add_parser("clear-cache", help="Remove all cached layouts.")
    p.add_argument("--cache-dir", default=None)
    p.set_defaults(func=cmd_clear_cache)

    p = sub.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default=config.SERVER_HOST)
    p.add_argument("--port", type=int, default=config.SERVER_PORT)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except CliError as exc:
        print("Error: {}".format(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
