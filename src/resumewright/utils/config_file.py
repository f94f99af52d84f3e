"""Configuration file management for ResumeWright.

Supports loading configuration from:
1. User config: ~/.resumewright/config.yaml
2. Project config: .resumewright.yaml (in current directory)
3. CLI arguments (highest precedence)

Config files are merged with CLI taking precedence over project over user.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..config import StoreConfig
from ..utils.logging import LogConfig

# Default configuration schema
CONFIG_SCHEMA = {
    "store": {
        "min_percent": {"type": float, "range": (0, 100), "default": 5.0},
        "max_percent": {"type": float, "range": (0, 100), "default": 95.0},
        "continue_watching_limit": {"type": int, "range": (0, 1000), "default": 10},
        "storage_key": {"type": str, "default": "enhanced_episode_watch_progress"},
        "clear_on_rewind": {"type": bool, "default": False},
        "backend": {"type": str, "choices": ["memory", "file", "sqlite"], "default": "file"},
        "data_dir": {"type": str, "default": "~/.resumewright"},
        "write_mode": {"type": str, "choices": ["background", "sync"], "default": "background"},
        "auto_resume": {"type": bool, "default": False},
        "save_interval": {"type": float, "range": (0, 3600), "default": 5.0},
    },
    "logging": {
        "log_level": {"type": str, "choices": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], "default": "WARNING"},
        "log_format": {"type": str, "choices": ["text", "json"], "default": "text"},
        "log_file": {"type": str, "default": None},
    },
}

DEFAULT_CONFIG_TEMPLATE = """\
# ResumeWright Configuration File
# Location: ~/.resumewright/config.yaml or .resumewright.yaml (project-local)
#
# CLI arguments take precedence over config file values.

store:
  # Admission band: items are tracked only while
  # min_percent < progress < max_percent
  min_percent: 5
  max_percent: 95

  # Number of items in the continue-watching row
  continue_watching_limit: 10

  # Drop saved progress when the viewer rewinds to the start
  clear_on_rewind: false

  # Where progress is kept
  # Options: memory, file, sqlite
  backend: file
  data_dir: ~/.resumewright

  # background: coalesce writes on a worker thread; sync: write inline
  write_mode: background

  # Player integration
  auto_resume: false
  save_interval: 5

logging:
  log_level: WARNING
  log_format: text
  # log_file: ~/.resumewright/resumewright.log
"""


@dataclass
class ValidationError:
    """Represents a config validation error."""
    path: str
    message: str
    value: Any = None


@dataclass
class ConfigFileManager:
    """Manages configuration file loading, saving, and merging.

    Attributes:
        user_config_path: Path to user-level config file
        project_config_path: Path to project-level config file
        loaded_config: Currently loaded and merged configuration
    """

    user_config_path: Path = field(default_factory=lambda: Path.home() / ".resumewright" / "config.yaml")
    project_config_path: Path = field(default_factory=lambda: Path.cwd() / ".resumewright.yaml")
    loaded_config: Dict[str, Any] = field(default_factory=dict)
    _validation_errors: List[ValidationError] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Ensure paths are Path objects."""
        self.user_config_path = Path(self.user_config_path)
        self.project_config_path = Path(self.project_config_path)

    def load(self) -> Dict[str, Any]:
        """Load and merge configuration from all sources.

        Order of precedence (later overrides earlier):
        1. Built-in defaults
        2. User config
        3. Project config

        Returns:
            Merged configuration dictionary
        """
        self._validation_errors = []
        config: Dict[str, Any] = self._get_builtin_defaults()

        for path in (self.user_config_path, self.project_config_path):
            if path.exists():
                overlay = self._load_yaml_file(path)
                if overlay:
                    config = self._deep_merge(config, overlay)

        self._validate_config(config)
        self.loaded_config = config
        return config

    def _get_builtin_defaults(self) -> Dict[str, Any]:
        return {
            section: {key: schema["default"] for key, schema in fields.items()}
            for section, fields in CONFIG_SCHEMA.items()
        }

    def _load_yaml_file(self, path: Path) -> Optional[Dict[str, Any]]:
        """Load a YAML configuration file, recording errors instead of raising."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            self._validation_errors.append(ValidationError(path=str(path), message=f"YAML parsing error: {e}"))
            return None
        except OSError as e:
            self._validation_errors.append(ValidationError(path=str(path), message=f"Failed to read file: {e}"))
            return None

        if not isinstance(data, dict):
            self._validation_errors.append(
                ValidationError(path=str(path), message="Top level must be a mapping", value=data)
            )
            return None
        return data

    def _deep_merge(self, base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, overlay takes precedence."""
        result = base.copy()
        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate configuration against schema."""
        for section, fields in CONFIG_SCHEMA.items():
            values = config.get(section, {})
            if not isinstance(values, dict):
                self._validation_errors.append(ValidationError(path=section, message="Expected a mapping"))
                continue

            for key, schema in fields.items():
                value = values.get(key)
                if value is None:
                    continue
                path = f"{section}.{key}"

                expected_type = schema.get("type")
                if expected_type and not isinstance(value, expected_type):
                    # Allow int for float fields
                    if not (expected_type is float and isinstance(value, int) and not isinstance(value, bool)):
                        self._validation_errors.append(
                            ValidationError(
                                path=path,
                                message=f"Expected {expected_type.__name__}, got {type(value).__name__}",
                                value=value,
                            )
                        )
                        continue

                choices = schema.get("choices")
                if choices and value not in choices:
                    self._validation_errors.append(
                        ValidationError(path=path, message=f"Invalid value. Must be one of: {choices}", value=value)
                    )

                value_range = schema.get("range")
                if value_range and isinstance(value, (int, float)):
                    min_val, max_val = value_range
                    if not (min_val <= value <= max_val):
                        self._validation_errors.append(
                            ValidationError(
                                path=path,
                                message=f"Value must be between {min_val} and {max_val}",
                                value=value,
                            )
                        )

    def get_validation_errors(self) -> List[ValidationError]:
        """Get list of validation errors from last load."""
        return self._validation_errors

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a configuration value by dot-notation path (e.g. "store.backend")."""
        value: Any = self.loaded_config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value: Any, persist: bool = True) -> None:
        """Set a configuration value by dot-notation path."""
        keys = key_path.split(".")
        config = self.loaded_config
        for key in keys[:-1]:
            config = config.setdefault(key, {})
        config[keys[-1]] = value

        if persist:
            self.save_user_config()

    def save_user_config(self) -> None:
        """Save current configuration to user config file."""
        self.user_config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.user_config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self.loaded_config, f, default_flow_style=False, sort_keys=False)

    def init_config(self, target: str = "user") -> Path:
        """Write the commented default template to the user or project file."""
        config_path = self.user_config_path if target == "user" else self.project_config_path
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG_TEMPLATE)
        return config_path

    def show_config(self) -> str:
        return yaml.safe_dump(self.loaded_config, default_flow_style=False, sort_keys=False)

    def _valid_section(self, section: str) -> Dict[str, Any]:
        """Loaded values for a section, minus those that failed validation."""
        values = self.loaded_config.get(section, {})
        if not isinstance(values, dict):
            return {}
        invalid = {error.path for error in self._validation_errors}
        return {key: value for key, value in values.items() if f"{section}.{key}" not in invalid}

    def store_config(self, **cli_overrides: Any) -> StoreConfig:
        """Build a StoreConfig from the loaded files plus CLI overrides.

        Values reported by ``get_validation_errors`` fall back to defaults.
        """
        section = self._valid_section("store")
        section.update({key: value for key, value in cli_overrides.items() if value is not None})
        return StoreConfig.from_dict(section)

    def log_config(self, **cli_overrides: Any) -> LogConfig:
        section = self._valid_section("logging")
        section.update({key: value for key, value in cli_overrides.items() if value is not None})
        return LogConfig.from_dict(section)

    def config_exists(self) -> bool:
        return self.user_config_path.exists() or self.project_config_path.exists()
