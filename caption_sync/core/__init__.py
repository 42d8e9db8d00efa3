"""Core synchronization modules.

WHY: The core package holds the engine proper: the IR dataclasses, the
normalizer and segmenter that build them, the time map, the scroll
controller, the layout cache and the bubble caption selector.

HOW: ir.py defines the data structures, normalizer.py and segmenter.py
build them from provider payloads, timemap.py and scroller.py handle the
time-to-offset mapping, cache.py and pipeline.py prepare and persist
layouts, captions.py selects bubble captions.

RULES:
- IR dataclasses are the contract between stages; change with care
- Nothing here performs network I/O
- Only scroller.py runs on the frame path
"""
