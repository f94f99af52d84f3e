"""Playback session glue between a player and the progress store.

A ``PlaybackSession`` is opened when an item starts playing. It decides
whether to offer a resume prompt, forwards periodic position ticks to the
store at a bounded cadence, and performs the final save on teardown.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .core.records import ProgressRecord
from .core.store import ProgressStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Playback session lifecycle."""
    CREATED = "created"
    PROMPTING = "prompting"
    PLAYING = "playing"
    CLOSED = "closed"


@dataclass(frozen=True)
class ResumeOffer:
    """Saved position offered to the viewer when an item is reopened."""
    content_id: str
    position: float
    duration: float
    progress_percentage: float
    formatted_position: str
    formatted_duration: str

    @classmethod
    def from_record(cls, record: ProgressRecord) -> "ResumeOffer":
        return cls(
            content_id=record.content_id,
            position=record.current_time,
            duration=record.duration,
            progress_percentage=record.progress_percentage,
            formatted_position=record.formatted_current_time,
            formatted_duration=record.formatted_duration,
        )

    @property
    def prompt_text(self) -> str:
        return (
            f"You were at {self.formatted_position} of {self.formatted_duration} "
            f"({int(self.progress_percentage)}% completed)"
        )


class PlaybackSession:
    """Tracks one viewing of one content item.

    With ``auto_resume`` off, a saved record puts the session into
    PROMPTING and ticks are not saved until the viewer picks
    ``resume()`` or ``start_over()``; this keeps a stale tick from
    overwriting the position being offered. With ``auto_resume`` on, the
    first tick that reports a usable duration returns the saved position
    as a seek target.
    """

    def __init__(
        self,
        store: ProgressStore,
        content_id: str,
        title: str,
        show_name: Optional[str] = None,
        auto_resume: Optional[bool] = None,
        save_interval: Optional[float] = None,
    ):
        self.store = store
        self.content_id = content_id
        self.title = title
        self.show_name = show_name
        self.auto_resume = store.config.auto_resume if auto_resume is None else auto_resume
        self.save_interval = store.config.save_interval if save_interval is None else save_interval

        self.state = SessionState.CREATED
        self.offer: Optional[ResumeOffer] = None
        self.current_time = 0.0
        self.duration = 0.0
        self.saves = 0

        self._resumed = False
        self._last_saved_at: Optional[float] = None

    def open(self) -> Optional[ResumeOffer]:
        """Look up saved progress and decide how playback should start.

        Returns:
            The resume offer when a prompt should be shown, else None.
        """
        record = self.store.get_progress(self.content_id)
        if record is None:
            self._resumed = True
            self.state = SessionState.PLAYING
            return None

        self.offer = ResumeOffer.from_record(record)
        if self.auto_resume:
            self.state = SessionState.PLAYING
            logger.debug(f"Will auto-resume {self.content_id} at {self.offer.formatted_position}")
            return None

        self.state = SessionState.PROMPTING
        return self.offer

    @property
    def awaiting_decision(self) -> bool:
        return self.state == SessionState.PROMPTING

    def resume(self) -> float:
        """Viewer chose "Resume". Returns the position to seek to."""
        self._resumed = True
        self.state = SessionState.PLAYING
        if self.offer is None:
            return 0.0
        self.current_time = self.offer.position
        logger.info(f"Resuming {self.content_id} at {self.offer.formatted_position}")
        return self.offer.position

    def start_over(self) -> float:
        """Viewer chose "Start Over". Saved progress is discarded first."""
        self.store.start_over(self.content_id)
        self._resumed = True
        self.state = SessionState.PLAYING
        self.current_time = 0.0
        self._last_saved_at = None
        logger.info(f"Starting {self.content_id} from the beginning")
        return 0.0

    def on_tick(self, current_time: float, duration: float, playing: bool = True) -> Optional[float]:
        """Handle a periodic position report from the player.

        Returns:
            A seek target when auto-resume should jump to the saved
            position, otherwise None.
        """
        if self.state in (SessionState.PROMPTING, SessionState.CLOSED):
            return None

        if not _is_usable(current_time):
            logger.debug(f"Ignoring tick with unusable position for {self.content_id}")
            return None
        self.current_time = float(current_time)
        if _is_usable(duration):
            self.duration = float(duration)

        if not self._resumed and self.offer is not None and self.duration > 0:
            self._resumed = True
            self.current_time = self.offer.position
            logger.info(f"Auto-resuming {self.content_id} at {self.offer.formatted_position}")
            return self.offer.position

        if playing and self._save_due():
            self._save()
        return None

    def close(self) -> None:
        """Teardown: save the final position and stop accepting ticks."""
        if self.state == SessionState.CLOSED:
            return
        if self.state != SessionState.PROMPTING:
            self._save()
        self.state = SessionState.CLOSED

    def _save_due(self) -> bool:
        if self._last_saved_at is None:
            return True
        return abs(self.current_time - self._last_saved_at) >= self.save_interval

    def _save(self) -> None:
        if self.duration <= 0 or self.current_time <= 0:
            return
        self.store.update_progress(
            self.content_id,
            self.current_time,
            self.duration,
            self.title,
            self.show_name,
        )
        self._last_saved_at = self.current_time
        self.saves += 1

    def __enter__(self) -> "PlaybackSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _is_usable(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0
