"""ResumeWright - watch progress tracking and continue-watching resumption."""
__version__ = "1.0.0"

from .config import StoreConfig

from .exceptions import (
    ResumewrightError,
    ConfigurationError,
    InvalidProgressError,
    PersistenceError,
    CorruptStateError,
)

from .core import (
    ProgressRecord,
    ProgressStore,
    ChangeNotifier,
    StoreEvent,
    StoreEventType,
)

from .persistence import (
    KeyValueBackend,
    MemoryBackend,
    FileBackend,
    SQLiteBackend,
    create_backend,
)

from .session import PlaybackSession, ResumeOffer, SessionState

from .utils.formatting import format_elapsed, format_remaining, format_progress_text

from .utils.logging import LogConfig, configure_logging, get_logger, set_level

__all__ = [
    "__version__",
    "StoreConfig",
    # Exceptions
    "ResumewrightError",
    "ConfigurationError",
    "InvalidProgressError",
    "PersistenceError",
    "CorruptStateError",
    # Core
    "ProgressRecord",
    "ProgressStore",
    "ChangeNotifier",
    "StoreEvent",
    "StoreEventType",
    # Persistence
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
    "SQLiteBackend",
    "create_backend",
    # Playback
    "PlaybackSession",
    "ResumeOffer",
    "SessionState",
    # Formatting
    "format_elapsed",
    "format_remaining",
    "format_progress_text",
    # Logging
    "LogConfig",
    "configure_logging",
    "get_logger",
    "set_level",
]
