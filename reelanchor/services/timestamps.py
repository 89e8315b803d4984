"""Timestamp parsing and formatting helpers.

LLM output mentions times as ``MM:SS``, ``H:MM:SS``, ``[MM:SS-MM:SS]`` and
occasionally as ``1m30s``. Everything here returns ``None`` for input it
cannot read rather than raising; a bad timestamp is treated as no hint.
"""

import math
import re
from typing import Optional

_CLOCK_RE = re.compile(r"^(?:(\d{1,2}):)?(\d{1,2}):(\d{2})$")
_RANGE_RE = re.compile(
    r"\[?\s*((?:\d{1,2}:)?\d{1,2}:\d{2})\s*(?:-|–|—|to)\s*((?:\d{1,2}:)?\d{1,2}:\d{2})\s*\]?",
    re.IGNORECASE,
)
_SINGLE_RE = re.compile(r"((?:\d{1,2}:)?\d{1,2}:\d{2})")
_HMS_RE = re.compile(r"(?:(\d{1,2})h)?\s*(\d{1,2})m\s*(\d{1,2})s", re.IGNORECASE)
_RANGE_SEP_RE = re.compile(r"\s*(?:-|–|—|\bto\b)\s*", re.IGNORECASE)


def parse_timestamp(timestamp: str) -> Optional[int]:
    """Parse ``MM:SS`` or ``HH:MM:SS`` into whole seconds.

    Minutes and seconds must be below 60 (hours below 24). Minutes may
    exceed 59 only in the two-part form, where LLMs write ``75:10`` for
    long videos.
    """
    if not timestamp:
        return None
    match = _CLOCK_RE.match(timestamp.strip())
    if not match:
        return None

    hours = int(match.group(1)) if match.group(1) else 0
    minutes = int(match.group(2))
    seconds = int(match.group(3))

    if hours >= 24 or seconds >= 60:
        return None
    if match.group(1) and minutes >= 60:
        return None

    return hours * 3600 + minutes * 60 + seconds


def parse_timestamp_range(timestamp: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse ``[MM:SS-MM:SS]`` into ``(start, end)`` seconds.

    A lone ``[MM:SS]`` yields a zero-length range. Reversed ranges are
    swapped rather than rejected. Loose notations such as ``1m30s`` or
    ``(1m30s - 2m05s)`` are read through ``sanitize_timestamp``.
    """
    if not timestamp:
        return None

    match = _RANGE_RE.search(timestamp)
    if match:
        start = parse_timestamp(match.group(1))
        end = parse_timestamp(match.group(2))
        if start is None or end is None:
            return None
        return (start, end) if start <= end else (end, start)

    match = _SINGLE_RE.search(timestamp)
    if match:
        start = parse_timestamp(match.group(1))
        return (start, start) if start is not None else None
    return _parse_loose_range(timestamp)


def _parse_loose_range(value: str) -> Optional[tuple[int, int]]:
    times = []
    for part in _RANGE_SEP_RE.split(value, maxsplit=1):
        canonical = sanitize_timestamp(part)
        seconds = parse_timestamp(canonical) if canonical else None
        if seconds is not None:
            times.append(seconds)
    if not times:
        return None
    start, end = times[0], times[-1]
    return (start, end) if start <= end else (end, start)


def format_timestamp(total_seconds: float) -> str:
    """Format seconds as zero-padded ``MM:SS`` or ``HH:MM:SS``."""
    clamped = max(0, int(total_seconds)) if math.isfinite(total_seconds) else 0
    hours, remainder = divmod(clamped, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_timestamp_range(start: float, end: float) -> str:
    """Format a range the way prompts ask for it: ``[MM:SS-MM:SS]``."""
    return f"[{format_timestamp(start)}-{format_timestamp(end)}]"


def sanitize_timestamp(value: str) -> Optional[str]:
    """Coerce a loosely formatted timestamp into canonical zero-padded form.

    Accepts bracketed/parenthesized clock times and ``1h2m3s`` / ``2m3s``
    forms. Only the first time in the string is kept.
    """
    if not value:
        return None

    cleaned = re.sub(r"[\[\](){}【】]", " ", value)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    match = re.search(r"(\d{1,2}):(\d{1,2})(?::(\d{1,2}))?", cleaned)
    if match:
        if match.group(3) is not None:
            hours, minutes, seconds = (int(g) for g in match.groups())
        else:
            hours, minutes, seconds = 0, int(match.group(1)), int(match.group(2))
        return format_timestamp(hours * 3600 + minutes * 60 + seconds)

    match = _HMS_RE.search(cleaned)
    if match:
        hours = int(match.group(1) or 0)
        minutes = int(match.group(2))
        seconds = int(match.group(3))
        return format_timestamp(hours * 3600 + minutes * 60 + seconds)

    return None
