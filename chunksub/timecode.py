"""Conversion between float seconds and subtitle time codes (SRT and ASS)."""

import math
import re

from .exceptions import MalformedTimecode

_SRT_TIME_RE = re.compile(r"^(\d{2,}):([0-5]\d):([0-5]\d),(\d{3})$")


def _split_seconds(seconds: float):
    """Returns (hours, minutes, whole seconds, fractional part), truncating at every step."""
    if seconds < 0:
        seconds = 0.0 # Ensure non-negative time
    hrs = int(seconds // 3600)
    mins = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    return hrs, mins, secs, seconds % 1


def format_srt_time(seconds: float) -> str:
    """
    Formats seconds into SRT time format HH:MM:SS,mmm.

    Milliseconds are truncated, not rounded, so 2.9999 becomes 00:00:02,999.

    Args:
        seconds: Time in seconds.

    Returns:
        Formatted time string.
    """
    hrs, mins, secs, fraction = _split_seconds(seconds)
    milliseconds = math.floor(fraction * 1000)
    return f"{hrs:02d}:{mins:02d}:{secs:02d},{milliseconds:03d}"


def format_ass_time(seconds: float) -> str:
    """Formats seconds into ASS time format H:MM:SS.cc (hour not zero-padded)."""
    hrs, mins, secs, fraction = _split_seconds(seconds)
    centiseconds = math.floor(fraction * 100)
    return f"{hrs}:{mins:02d}:{secs:02d}.{centiseconds:02d}"


def parse_srt_time(text: str) -> float:
    """
    Parses an SRT time code back into seconds.

    Args:
        text: A string of the form HH:MM:SS,mmm.

    Returns:
        The time in seconds.

    Raises:
        MalformedTimecode: If the string does not match HH:MM:SS,mmm.
    """
    match = _SRT_TIME_RE.match(text.strip()) if isinstance(text, str) else None
    if not match:
        raise MalformedTimecode(f"Not an SRT time code (HH:MM:SS,mmm): {text!r}")
    hrs, mins, secs, millis = (int(part) for part in match.groups())
    return hrs * 3600 + mins * 60 + secs + millis / 1000
