"""Display formatting for playback positions."""

import math
from typing import Any

ZERO_TIME = "00:00"


def format_elapsed(seconds: Any) -> str:
    """Format a position in seconds as ``H:MM:SS`` or ``MM:SS``.

    Hours are only shown from one hour upwards. Non-numeric, NaN and
    infinite input formats as ``"00:00"``; negative input clamps to zero.
    """
    try:
        value = float(seconds)
    except (TypeError, ValueError):
        return ZERO_TIME
    if not math.isfinite(value):
        return ZERO_TIME

    total_seconds = max(0, int(value))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    remaining_seconds = total_seconds % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{remaining_seconds:02d}"
    return f"{minutes:02d}:{remaining_seconds:02d}"


def remaining_seconds(current_time: float, duration: float) -> float:
    """Seconds left in the item, never negative."""
    return max(0.0, duration - current_time)


def format_remaining(record: Any) -> str:
    """Format the time left for a progress record."""
    return format_elapsed(remaining_seconds(record.current_time, record.duration))


def format_progress_text(record: Any) -> str:
    """Format ``"12:00 / 45:00 (26%)"`` for a progress record."""
    return (
        f"{format_elapsed(record.current_time)} / {format_elapsed(record.duration)} "
        f"({int(record.progress_percentage)}%)"
    )
