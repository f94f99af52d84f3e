"""Viewing insights derived from in-progress records.

All functions are pure and take any iterable of ``ProgressRecord``;
pass ``store.snapshot().values()`` for a consistent view.
"""

from typing import Any, Dict, Iterable, List, Optional

from .records import ProgressRecord

UNKNOWN_SHOW = "Unknown Show"

ALMOST_FINISHED_PERCENT = 80.0
BARELY_STARTED_PERCENT = 20.0
BINGE_MIN_EPISODES = 3
STREAK_MAX_GAP_DAYS = 1


def by_recency(records: Iterable[ProgressRecord]) -> List[ProgressRecord]:
    """Most recently watched first; ties keep their input order."""
    return sorted(records, key=lambda record: record.last_watched, reverse=True)


def group_by_show(records: Iterable[ProgressRecord]) -> Dict[str, List[ProgressRecord]]:
    """Group records by show name, preserving input order within groups."""
    grouped: Dict[str, List[ProgressRecord]] = {}
    for record in records:
        grouped.setdefault(record.show_name or UNKNOWN_SHOW, []).append(record)
    return grouped


def total_watch_time(records: Iterable[ProgressRecord]) -> float:
    """Sum of saved positions in seconds."""
    return sum(record.current_time for record in records)


def almost_finished(records: Iterable[ProgressRecord]) -> List[ProgressRecord]:
    return by_recency(r for r in records if r.progress_percentage > ALMOST_FINISHED_PERCENT)


def barely_started(records: Iterable[ProgressRecord]) -> List[ProgressRecord]:
    return by_recency(r for r in records if r.progress_percentage < BARELY_STARTED_PERCENT)


def most_resumed(records: Iterable[ProgressRecord]) -> List[ProgressRecord]:
    """Items sitting in the middle of the band, where resuming matters most."""
    return by_recency(
        r
        for r in records
        if BARELY_STARTED_PERCENT <= r.progress_percentage <= ALMOST_FINISHED_PERCENT
    )


def binge_watching(records: Iterable[ProgressRecord]) -> List[str]:
    """Shows with at least three items in progress."""
    grouped = group_by_show(records)
    return [show for show, items in grouped.items() if len(items) >= BINGE_MIN_EPISODES]


def watching_streaks(records: Iterable[ProgressRecord]) -> Dict[str, int]:
    """Per show, how many recent items were watched at most one whole day apart."""
    streaks: Dict[str, int] = {}
    for show, items in group_by_show(records).items():
        streak = 0
        last = None
        for record in by_recency(items):
            if last is not None and (last - record.last_watched).days > STREAK_MAX_GAP_DAYS:
                break
            streak += 1
            last = record.last_watched
        streaks[show] = streak
    return streaks


def watch_statistics(records: Iterable[ProgressRecord]) -> Dict[str, Any]:
    """Summary figures for a statistics screen or the ``stats`` command."""
    items = list(records)
    grouped = group_by_show(items)

    most_recent: Optional[ProgressRecord] = max(items, key=lambda r: r.last_watched, default=None)
    most_watched_show = max(grouped.items(), key=lambda kv: len(kv[1]), default=None)

    return {
        "total_episodes_in_progress": len(items),
        "total_watch_time_hours": total_watch_time(items) / 3600,
        "average_completion_percentage": (
            sum(r.progress_percentage for r in items) / len(items) if items else 0.0
        ),
        "shows_being_watched": len(grouped),
        "most_recent_episode": most_recent.title if most_recent else "None",
        "most_watched_show": most_watched_show[0] if most_watched_show else "None",
        "total_shows_with_progress": len({r.show_name for r in items if r.show_name}),
    }


def recommendations(records: Iterable[ProgressRecord], max_finish_suggestions: int = 3) -> List[str]:
    """Human-readable nudges based on viewing patterns."""
    items = list(records)
    suggestions: List[str] = []

    for show, episodes in group_by_show(items).items():
        average = sum(r.progress_percentage for r in episodes) / len(episodes)
        if average > 70:
            suggestions.append(f"Continue watching {show} - you're really into this series!")

    for record in almost_finished(items)[:max_finish_suggestions]:
        left = 100 - int(record.progress_percentage)
        suggestions.append(f'Finish watching "{record.title}" - only {left}% left!')

    return suggestions
