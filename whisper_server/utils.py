"""
whisper_server.utils - Shared utility functions.
"""

from __future__ import annotations


def format_timestamp(seconds: float) -> str:
    """Format seconds as a zero-padded HH:MM:SS.mmm timestamp.

    Rounds to whole milliseconds first so the carry reaches minutes and hours.

    Args:
        seconds: Offset in seconds

    Returns:
        Formatted string, e.g. 4.0 -> "00:00:04.000"
    """
    total_ms = round(seconds * 1000)
    total_secs, ms = divmod(total_ms, 1000)
    minutes_total, secs = divmod(total_secs, 60)
    hours, minutes = divmod(minutes_total, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"
