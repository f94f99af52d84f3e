"""Utility modules for ResumeWright."""

from .formatting import format_elapsed, format_remaining, format_progress_text

__all__ = [
    "format_elapsed",
    "format_remaining",
    "format_progress_text",
]
