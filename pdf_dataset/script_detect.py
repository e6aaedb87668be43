"""Detect whether extracted text contains a target script."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

MYANMAR_RANGES: tuple[tuple[int, int], ...] = (
    (0x1000, 0x109F),  # Myanmar
    (0xA9E0, 0xA9FF),  # Myanmar Extended-B
    (0xAA60, 0xAA7F),  # Myanmar Extended-A
)


@lru_cache(maxsize=8)
def _script_pattern(ranges: tuple[tuple[int, int], ...]) -> re.Pattern[str]:
    body = "".join(f"{re.escape(chr(lo))}-{re.escape(chr(hi))}" for lo, hi in ranges)
    return re.compile(f"[{body}]")


def contains_script(texts: Iterable[str], ranges: tuple[tuple[int, int], ...]) -> bool:
    """Return True if any text holds a code point inside *ranges*."""
    pattern = _script_pattern(tuple(ranges))
    return any(pattern.search(text) for text in texts)


def has_myanmar_text(texts: Iterable[str]) -> bool:
    return contains_script(texts, MYANMAR_RANGES)
