"""Watch-progress record model."""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..exceptions import InvalidProgressError
from ..utils.formatting import format_elapsed, remaining_seconds


def compute_percentage(current_time: float, duration: float) -> float:
    """Percentage watched; zero when the duration is unknown."""
    if duration > 0:
        return (current_time / duration) * 100
    return 0.0


def validate_position(
    value: Any,
    field_name: str,
    content_id: Optional[str] = None,
) -> float:
    """Coerce a position or duration to a finite, non-negative float.

    Raises:
        InvalidProgressError: If the value is non-numeric, non-finite or negative.
    """
    if isinstance(value, bool):
        raise InvalidProgressError(
            f"{field_name} must be a number", content_id=content_id, field_name=field_name, value=value
        )
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidProgressError(
            f"{field_name} must be a number", content_id=content_id, field_name=field_name, value=value
        ) from e
    if not math.isfinite(number):
        raise InvalidProgressError(
            f"{field_name} must be finite", content_id=content_id, field_name=field_name, value=value
        )
    if number < 0:
        raise InvalidProgressError(
            f"{field_name} must not be negative", content_id=content_id, field_name=field_name, value=value
        )
    return number


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str):
        raise ValueError(f"lastWatched must be an ISO-8601 string, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ProgressRecord:
    """Last known playback position for one content item."""
    content_id: str
    title: str
    current_time: float
    duration: float
    last_watched: datetime
    show_name: Optional[str] = None

    @property
    def progress_percentage(self) -> float:
        """Get progress as percentage."""
        return compute_percentage(self.current_time, self.duration)

    @property
    def remaining_time(self) -> float:
        return remaining_seconds(self.current_time, self.duration)

    @property
    def formatted_current_time(self) -> str:
        return format_elapsed(self.current_time)

    @property
    def formatted_duration(self) -> str:
        return format_elapsed(self.duration)

    @property
    def formatted_remaining_time(self) -> str:
        return format_elapsed(self.remaining_time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary layout."""
        data: Dict[str, Any] = {
            "contentId": self.content_id,
            "title": self.title,
            "currentTime": self.current_time,
            "duration": self.duration,
            "progressPercentage": self.progress_percentage,
            "lastWatched": self.last_watched.isoformat(),
        }
        if self.show_name is not None:
            data["showName"] = self.show_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        """Create from the persisted dictionary layout.

        ``progressPercentage`` is read for compatibility but recomputed
        from the stored position and duration.

        Raises:
            InvalidProgressError: If a numeric field is unusable.
            KeyError: If a required field is missing.
            ValueError: If the timestamp cannot be parsed.
        """
        content_id = data["contentId"]
        if not isinstance(content_id, str) or not content_id:
            raise InvalidProgressError("contentId must be a non-empty string", field_name="contentId")
        show_name = data.get("showName")
        return cls(
            content_id=content_id,
            title=str(data["title"]),
            current_time=validate_position(data["currentTime"], "currentTime", content_id),
            duration=validate_position(data["duration"], "duration", content_id),
            last_watched=parse_timestamp(data["lastWatched"]),
            show_name=str(show_name) if show_name is not None else None,
        )
