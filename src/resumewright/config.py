"""Configuration module for the ResumeWright progress store."""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from .exceptions import ConfigurationError

DEFAULT_STORAGE_KEY = "enhanced_episode_watch_progress"
DEFAULT_LEGACY_KEYS = [
    "episode_watch_progress",
    "video_watch_progress",
    "watch_progress",
]
VALID_BACKENDS = ("memory", "file", "sqlite")
VALID_WRITE_MODES = ("background", "sync")
_NUMERIC_FIELDS = (
    "min_percent",
    "max_percent",
    "continue_watching_limit",
    "flush_timeout",
    "save_interval",
)


@dataclass
class StoreConfig:
    """Configuration for the watch-progress store.

    Attributes:
        min_percent: Lower bound of the admission band (exclusive)
        max_percent: Completion threshold; at or above it a record is evicted
        continue_watching_limit: Default length of the continue-watching list
        storage_key: Backend key the serialized map is stored under
        legacy_keys: Older keys migrated into storage_key at startup
        clear_on_rewind: Drop an existing record when progress falls to or
            below min_percent (default keeps it)
        backend: Backend type used by the CLI ("memory", "file", "sqlite")
        data_dir: Directory for file/sqlite backends
        write_mode: "background" coalesces writes on a worker thread,
            "sync" writes inline on the caller's thread
        flush_timeout: Seconds to wait for pending writes on close
        auto_resume: Seek to the saved position without prompting
        save_interval: Seconds of playback between saves in a PlaybackSession
    """

    min_percent: float = 5.0
    max_percent: float = 95.0
    continue_watching_limit: int = 10
    storage_key: str = DEFAULT_STORAGE_KEY
    legacy_keys: List[str] = field(default_factory=lambda: list(DEFAULT_LEGACY_KEYS))
    clear_on_rewind: bool = False

    backend: Literal["memory", "file", "sqlite"] = "file"
    data_dir: Path = field(default_factory=lambda: Path.home() / ".resumewright")
    write_mode: Literal["background", "sync"] = "background"
    flush_timeout: float = 5.0

    auto_resume: bool = False
    save_interval: float = 5.0

    def __post_init__(self) -> None:
        """Normalize paths and validate configuration."""
        for name in _NUMERIC_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"{name} must be a number",
                    config_key=name,
                    config_value=value,
                )

        if not isinstance(self.data_dir, (str, Path)):
            raise ConfigurationError(
                "data_dir must be a path",
                config_key="data_dir",
                config_value=self.data_dir,
            )
        if not isinstance(self.data_dir, Path):
            self.data_dir = Path(self.data_dir).expanduser()

        if not 0.0 <= self.min_percent < self.max_percent <= 100.0:
            raise ConfigurationError(
                "Admission band must satisfy 0 <= min_percent < max_percent <= 100",
                config_key="min_percent/max_percent",
                config_value=(self.min_percent, self.max_percent),
            )

        if self.continue_watching_limit < 0:
            raise ConfigurationError(
                "continue_watching_limit must be non-negative",
                config_key="continue_watching_limit",
                config_value=self.continue_watching_limit,
            )

        if not isinstance(self.storage_key, str) or not self.storage_key:
            raise ConfigurationError(
                "storage_key must be a non-empty string",
                config_key="storage_key",
                config_value=self.storage_key,
            )

        if not isinstance(self.legacy_keys, list) or not all(isinstance(k, str) for k in self.legacy_keys):
            raise ConfigurationError(
                "legacy_keys must be a list of strings",
                config_key="legacy_keys",
                config_value=self.legacy_keys,
            )

        if self.storage_key in self.legacy_keys:
            raise ConfigurationError(
                "storage_key must not also be listed as a legacy key",
                config_key="legacy_keys",
                config_value=self.storage_key,
            )

        if self.backend not in VALID_BACKENDS:
            raise ConfigurationError(
                f"Unknown backend '{self.backend}'",
                config_key="backend",
                config_value=self.backend,
                valid_values=list(VALID_BACKENDS),
            )

        if self.write_mode not in VALID_WRITE_MODES:
            raise ConfigurationError(
                f"Unknown write_mode '{self.write_mode}'",
                config_key="write_mode",
                config_value=self.write_mode,
                valid_values=list(VALID_WRITE_MODES),
            )

        if self.flush_timeout <= 0:
            raise ConfigurationError(
                "flush_timeout must be positive",
                config_key="flush_timeout",
                config_value=self.flush_timeout,
            )

        if self.save_interval < 0:
            raise ConfigurationError(
                "save_interval must be non-negative",
                config_key="save_interval",
                config_value=self.save_interval,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        data = asdict(self)
        data["data_dir"] = str(self.data_dir)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreConfig":
        """Create configuration from dictionary, ignoring unknown keys."""
        known = {name for name in cls.__dataclass_fields__}
        kwargs = {key: value for key, value in data.items() if key in known and value is not None}
        return cls(**kwargs)

    def with_overrides(self, **overrides: Optional[Any]) -> "StoreConfig":
        """Return a copy with non-None overrides applied."""
        data = self.to_dict()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return StoreConfig.from_dict(data)
